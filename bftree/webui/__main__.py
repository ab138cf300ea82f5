from __future__ import annotations

import argparse
import logging
from typing import List, Optional

import uvicorn

from .app import create_app


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the bftree HTTP API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="uvicorn log level; 'debug' also enables bftree debug logging",
    )
    args = parser.parse_args(argv)

    if args.log_level == "debug":
        logging.basicConfig(level=logging.DEBUG)
    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=args.log_level)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
