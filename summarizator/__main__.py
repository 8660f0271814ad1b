"""
Summarizator command line entry point.

    python -m summarizator [--host HOST] [--port PORT] [--reload]

Starts the API server with uvicorn; defaults come from ``Settings``.
"""

import argparse

import uvicorn

from summarizator.core.config import get_settings


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="summarizator",
        description="Run the Summarizator API server.",
    )
    parser.add_argument("--host", default=settings.app_host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.app_port, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args(argv)

    uvicorn.run(
        "summarizator.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
