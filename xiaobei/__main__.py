"""Run the xiaobei agent server: python -m xiaobei"""

from xiaobei.server import main

if __name__ == "__main__":
    main()
