"""
Grey Seal Search - Search the knowledge base from command line

Usage:
    greyseal-search "your query here"
    greyseal-search "password reset" --top-k 10
    greyseal-search "release notes" --json
"""

import argparse
import json
import logging
import sys
import uuid

from greyseal.config import load_config
from greyseal.errors import GreySealError
from greyseal.models import Question


def main():
    parser = argparse.ArgumentParser(
        description="Search the Grey Seal knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  greyseal-search "what colour is the sky"
  greyseal-search "password reset" --top-k 10
  greyseal-search "release notes" --json
        """
    )

    parser.add_argument("query", help="Search query")
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="Number of results to return (default: answer.top_k from config)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration file (default: search for .greyseal.yml)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show detailed log output"
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.top_k is not None and args.top_k < 1:
        print("Error: --top-k must be at least 1", file=sys.stderr)
        return 1

    try:
        from greyseal.app import GreySealApp

        config = load_config(args.config)
        if args.top_k is not None:
            config.answer.top_k = args.top_k

        app = GreySealApp.from_config(config)
        try:
            results = app.answering.retrieve(Question(id=str(uuid.uuid4()), content=args.query))
        finally:
            app.close()

    except GreySealError as e:
        print(f"Error during search: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([
            {
                "rank": i,
                "chunk_id": result.chunk.id,
                "source_id": result.chunk.source_id,
                "score": float(result.score),
                "content": result.chunk.content,
            }
            for i, result in enumerate(results, 1)
        ], indent=2))
        return 0

    print(f"Found {len(results)} results for: '{args.query}'", file=sys.stderr)
    for i, result in enumerate(results, 1):
        print("=" * 80)
        print(f"Result {i}/{len(results)} - Score: {result.score:.4f}")
        print(f"Source: {result.chunk.source_id}")
        print(f"Chunk ID: {result.chunk.id}")
        print("-" * 80)
        print(result.chunk.content)
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
