"""Entry point for the query-pipe engine process."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from query_pipe.config import get_engine_root, get_log_level
from query_pipe.engine.server import EngineServer


def main() -> None:
    """Serve the line protocol on stdin/stdout until the client leaves."""
    parser = argparse.ArgumentParser(description="query-pipe engine (SQLite)")
    parser.add_argument(
        "--root",
        type=Path,
        default=get_engine_root(),
        help="Directory relative database names resolve against (default: QP_ENGINE_ROOT or cwd)",
    )
    args = parser.parse_args()

    # stdout is the protocol channel; logs go to stderr
    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    server = EngineServer(sys.stdin.buffer, sys.stdout.buffer, root=args.root)
    sys.exit(asyncio.run(server.serve()))


if __name__ == "__main__":
    main()
