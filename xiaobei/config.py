"""
Xiaobei agent configuration.

The built-in DEFAULT_CONFIG describes the xiaobei agent. A YAML file with the
same layout replaces it when passed to load_config() or named by the
XIAOBEI_CONFIG environment variable.

Environment variable interpolation in string values:
- ${VAR_NAME} - Required variable, raises KeyError if not set
- ${VAR_NAME:-default} - Optional variable with default value

Example:
```yaml
agent:
  protocol: xiaobei/v1
  name: xiaobei
capabilities:
  - name: translate
    payment_required: true
    price: "0.001 USDC"
    payment_protocol: x402
    pay_to: "${XIAOBEI_PAY_TO}"
  - name: chat
server:
  port: "${PORT:-3401}"
```
"""

import copy
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from xiaobei.core.catalog import CapabilityCatalog
from xiaobei.core.errors import InternalError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "XIAOBEI_CONFIG"

LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'

# Pattern for environment variable substitution: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')

DEFAULT_CONFIG: Dict[str, Any] = {
    "agent": {
        "protocol": "xiaobei/v1",
        "name": "xiaobei",
        "description": "Compass AI - translation, code review, summarization, chat",
        "version": "0.1.0",
        "created": "2026-01-31T00:00:00Z",
        "links": {
            "blog": "https://i90o.github.io/xiaobei-blog/",
            "shellmates": "xiaobei",
            "moltbook": "CompassAI",
            "lobchan": "xiaobei",
        },
    },
    "capabilities": [
        {
            "name": "translate",
            "description": "Translate text between languages",
            "payment_required": True,
            "price": "0.001 USDC",
            "payment_protocol": "x402",
            "pay_to": "${XIAOBEI_PAY_TO:-xiaobei.payee}",
        },
        {
            "name": "code-review",
            "description": "Review a code snippet",
            "payment_required": True,
            "price": "0.01 USDC",
            "payment_protocol": "x402",
            "pay_to": "${XIAOBEI_PAY_TO:-xiaobei.payee}",
        },
        {
            "name": "summarize",
            "description": "Summarize text",
            "payment_required": True,
            "price": "0.005 USDC",
            "payment_protocol": "x402",
            "pay_to": "${XIAOBEI_PAY_TO:-xiaobei.payee}",
        },
        {
            "name": "chat",
            "description": "Free conversation",
            "payment_required": False,
        },
    ],
    "server": {
        "host": "${XIAOBEI_HOST:-0.0.0.0}",
        "port": "${PORT:-3401}",
    },
}


def interpolate_env_vars(value: Any) -> Any:
    """
    Recursively interpolate environment variables in configuration values.

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with environment variables interpolated
    """
    if isinstance(value, str):
        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.environ.get(var_name)

            if env_value is not None:
                return env_value
            elif default_value is not None:
                return default_value
            else:
                raise KeyError(
                    f"Environment variable '{var_name}' is required but not set. "
                    f"Set it or provide a default: ${{{var_name}:-default}}"
                )

        return ENV_VAR_PATTERN.sub(replace_env_var, value)

    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]

    else:
        return value


@dataclass
class ServerConfig:
    """HTTP listener settings."""
    host: str = "0.0.0.0"
    port: int = 3401


@dataclass
class AgentConfig:
    """Interpolated configuration: agent card, capabilities and server settings."""
    raw: Dict[str, Any]
    server: ServerConfig

    def card(self) -> Dict[str, Any]:
        """Agent card mapping accepted by CapabilityCatalog.from_config."""
        card = dict(self.raw.get("agent") or {})
        card["capabilities"] = self.raw.get("capabilities") or []
        return card

    def build_catalog(self) -> CapabilityCatalog:
        return CapabilityCatalog.from_config(self.card())


def _server_config(section: Optional[Dict[str, Any]]) -> ServerConfig:
    section = section or {}
    defaults = ServerConfig()
    try:
        port = int(section.get("port", defaults.port))
    except (TypeError, ValueError):
        raise InternalError(f"Invalid server port: {section.get('port')!r}")
    return ServerConfig(host=str(section.get("host", defaults.host)), port=port)


def config_from_dict(data: Dict[str, Any]) -> AgentConfig:
    """
    Build an AgentConfig from a raw mapping.

    Args:
        data: Mapping with "agent", "capabilities" and optional "server"

    Returns:
        AgentConfig with environment variables interpolated
    """
    if not isinstance(data, dict):
        raise InternalError("Configuration must be a mapping")
    data = interpolate_env_vars(copy.deepcopy(data))
    return AgentConfig(raw=data, server=_server_config(data.get("server")))


def load_config_from_file(config_path: Union[str, Path]) -> AgentConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        AgentConfig

    Raises:
        FileNotFoundError: If the file does not exist
        InternalError: If the file is not a mapping
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")
    with open(config_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    return config_from_dict(data)


def load_config(config_path: Optional[Union[str, Path]] = None) -> AgentConfig:
    """
    Load configuration from a file, XIAOBEI_CONFIG, or the built-in default.

    Args:
        config_path: Explicit YAML path (takes precedence over the env var)

    Returns:
        AgentConfig
    """
    config_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if config_path:
        return load_config_from_file(config_path)
    return config_from_dict(DEFAULT_CONFIG)
