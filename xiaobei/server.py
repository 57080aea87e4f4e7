"""
HTTP boundary for the Xiaobei agent.

Routes:
    GET  /.well-known/agent.json   discovery
    POST /agent/handshake          session negotiation
    POST /agent/message            capability dispatch (payment proof in X-Payment)
    GET  /agent/sessions           session listing
    GET  /                         service info
    GET  /health                   liveness
"""

import argparse
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
import uvicorn

from xiaobei.config import LOG_FORMAT, load_config
from xiaobei.core.errors import InternalError, ProtocolError, ValidationError
from xiaobei.core.types import REQUEST_ID_HEADER, RequestID
from xiaobei.protocol.handshake import build_handshake_rejection
from xiaobei.service import AgentService

logger = logging.getLogger(__name__)


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(f"Invalid JSON: {e}")
    except RecursionError:
        raise ValidationError("Invalid JSON: nesting too deep")


def create_app(service: AgentService) -> FastAPI:
    """Build the FastAPI application around an agent service."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service.start()
        try:
            yield
        finally:
            service.stop()

    card = service.catalog.card
    app = FastAPI(
        title=f"{card.name} agent",
        description=card.description,
        version=card.version,
        lifespan=lifespan,
    )
    app.state.service = service

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or RequestID.generate().value
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _error_response(request: Request, error: ProtocolError) -> JSONResponse:
        error.request_id = getattr(request.state, "request_id", None)
        return JSONResponse(status_code=error.http_status, content=error.to_dict())

    @app.exception_handler(ProtocolError)
    async def protocol_error_handler(request: Request, exc: ProtocolError):
        return _error_response(request, exc)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(request, InternalError("Internal server error"))

    @app.get("/.well-known/agent.json")
    async def discovery(request: Request):
        return service.discovery(str(request.base_url))

    @app.post("/agent/handshake")
    async def handshake(request: Request):
        try:
            body = await _json_body(request)
            return service.handshake(body)
        except ValidationError as e:
            logger.warning("Handshake rejected: %s", e.message)
            e.request_id = request.state.request_id
            return JSONResponse(status_code=e.http_status, content=build_handshake_rejection(e))

    @app.post("/agent/message")
    async def message(
        request: Request,
        x_payment: Optional[str] = Header(None, alias="x-payment"),
    ):
        body = await _json_body(request)
        result = service.message(body, payment_proof=x_payment)
        return result.to_dict()

    @app.get("/agent/sessions")
    async def sessions():
        return service.list_sessions()

    @app.get("/")
    async def info():
        return service.info()

    @app.get("/health")
    async def health():
        return service.health()

    return app


def build_app(config_path: Optional[str] = None) -> FastAPI:
    """Application from configuration (file, XIAOBEI_CONFIG, or built-in default)."""
    config = load_config(config_path)
    return create_app(AgentService(config.build_catalog()))


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Run the xiaobei agent server")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--host", help="Bind address (overrides configuration)")
    parser.add_argument("--port", type=int, help="Bind port (overrides configuration)")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("XIAOBEI_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    config = load_config(args.config)
    service = AgentService(config.build_catalog())
    app = create_app(service)

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("Listening on http://%s:%d", host, port)
    logger.info("Discovery: GET /.well-known/agent.json")
    logger.info("Handshake: POST /agent/handshake")
    logger.info("Message: POST /agent/message")
    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
