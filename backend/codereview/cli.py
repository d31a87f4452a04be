"""Index a repository from the command line and exit.

Usage: codereview-index <owner/repo> [branch] [--reset]
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from codereview.config import settings
from codereview.container import Services, build_services
from codereview.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the vector index for a GitHub repository.")
    parser.add_argument("repo", help="Repository full name, owner/repo")
    parser.add_argument("branch", nargs="?", default="main", help="Branch to index (default: main)")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete the repository's existing vectors before indexing",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, services: Optional[Services] = None) -> int:
    services = services or build_services()
    try:
        if args.reset:
            result = await services.indexer.reindex_repository(args.repo, args.branch)
        else:
            result = await services.indexer.index_repository(args.repo, args.branch)
    finally:
        await services.close()

    if result.files_total == 0:
        logger.error("nothing_indexed", repo=args.repo, branch=args.branch)
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if "/" not in args.repo:
        print("Usage: codereview-index <owner/repo> [branch] [--reset]", file=sys.stderr)
        return 2
    setup_logging(debug=settings.debug)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
