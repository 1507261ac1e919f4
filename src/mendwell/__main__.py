"""Command-line entry point: ``mendwell`` / ``python -m mendwell``."""

import argparse
import logging

import uvicorn

from mendwell.config import get_config
from mendwell.server import create_app


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="mendwell", description="Run the Mendwell self-healing server")
    parser.add_argument("--host", help="Bind address (default from config)")
    parser.add_argument("--port", type=int, help="Bind port (default from config)")
    parser.add_argument("--env", dest="environment", help="Environment name, e.g. development or production")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = get_config()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.environment:
        config.environment = args.environment

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
