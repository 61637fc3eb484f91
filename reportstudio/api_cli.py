"""
``reportstudio-api``: run the Report Studio REST backend under uvicorn.

Usage:
  reportstudio-api --db ./data/reportstudio.db --port 8000
  reportstudio-api --no-seed --log-format console --reload
"""

from __future__ import annotations

import argparse
import os


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the ESG Report Studio API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--db", help="SQLite file holding the report documents (REPORTSTUDIO_DB_PATH)")
    parser.add_argument("--no-seed", action="store_true", help="Start without the sample users, roles and catalog")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-format", choices=["json", "console"])
    parser.add_argument("--reload", action="store_true")
    return parser


def apply_environment(args: argparse.Namespace) -> None:
    """Export the options as environment overrides; the server process reads them when settings load."""
    if args.db:
        os.environ["REPORTSTUDIO_DB_PATH"] = args.db
    if args.no_seed:
        os.environ["REPORTSTUDIO_SEED"] = "false"
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level
    if args.log_format:
        os.environ["LOG_FORMAT"] = args.log_format


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    apply_environment(args)

    import uvicorn

    uvicorn.run(
        "reportstudio.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
