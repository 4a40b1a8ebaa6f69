#!/usr/bin/env python3
"""
Account API -- user accounts behind bearer-token authentication.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 9000
  python main.py --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY        Token signing key, at least 32 characters. Required unless DEBUG=true.
  PASSWORD_PEPPER   Site-wide password salt material. Required unless DEBUG=true.
  DATABASE_URL      SQLAlchemy URL of the account database (default sqlite:///account.db).
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Serve the account API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Bind port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
