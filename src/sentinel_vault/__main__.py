# Sentinel Vault - Main Entry Point
#
# Runs the FastAPI backend with uvicorn:
#
#   python -m sentinel_vault --host 127.0.0.1 --port 8000
#   python -m sentinel_vault --env-file .env.production

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import load_settings, set_settings


def main():
    """Parse arguments, load settings and serve the API."""
    parser = argparse.ArgumentParser(
        description="Sentinel Vault - encrypted credential vault API server",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--env-file", type=Path, default=None, help="Load settings from this .env file")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument("--version", action="version", version=f"Sentinel Vault v{__version__}")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        set_settings(load_settings(args.env_file))
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    import uvicorn

    from .api.main import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
