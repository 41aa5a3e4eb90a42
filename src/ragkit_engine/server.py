"""Uvicorn startup for ragkit-engine."""

from __future__ import annotations

import argparse
import logging
import os
import sys

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def main() -> None:
    """Start the ragkit-engine server."""
    parser = argparse.ArgumentParser(description="ragkit-engine server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=3000, help="Bind port (default: 3000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--log-level", default="info", choices=LOG_LEVELS, help="Logging level (default: info)")
    parser.add_argument("--settings", default=None, help="Path to a JSON settings file")
    parser.add_argument("--store-path", default=None, help="Vector store snapshot path")
    args = parser.parse_args()

    try:
        import uvicorn
    except ImportError:
        print("uvicorn not installed. Run: pip install uvicorn[standard]", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # The factory reads its configuration from the environment
    if args.settings:
        os.environ["RAGKIT_SETTINGS_FILE"] = args.settings
    if args.store_path:
        os.environ["RAGKIT_STORE_PATH"] = args.store_path

    uvicorn.run(
        "ragkit_engine.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
