"""
Grey Seal Ingest - Add resources to the knowledge base from command line

Usage:
    greyseal-ingest https://example.com/article --kind website
    greyseal-ingest docs/handbook.pdf --kind pdf
    greyseal-ingest docs/ --kind file
    greyseal-ingest notes.md --kind file --publish
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

from greyseal.cli import refuse_memory_bus
from greyseal.config import load_config
from greyseal.errors import GreySealError
from greyseal.models import Resource, SourceKind


def build_resources(locator: str, kind: SourceKind, service: str, entity: str, allowed_base_paths=None):
    """One resource per locator, or per loadable file when a directory is given"""
    if kind is not SourceKind.WEBSITE and Path(locator).expanduser().is_dir():
        from greyseal.indexing.content_loader import discover_files

        return [
            Resource(
                id=str(uuid.uuid4()),
                service=service,
                entity=entity,
                source_kind=SourceKind.PDF if path.suffix.lower() == '.pdf' else SourceKind.FILE,
                locator=str(path),
            )
            for path in discover_files(locator, allowed_base_paths)
        ]
    return [Resource(id=str(uuid.uuid4()), service=service, entity=entity, source_kind=kind, locator=locator)]


def main():
    parser = argparse.ArgumentParser(
        description="Ingest resources into the Grey Seal knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  greyseal-ingest https://example.com/article --kind website
  greyseal-ingest docs/handbook.pdf --kind pdf
  greyseal-ingest docs/ --kind file
  greyseal-ingest notes.md --kind file --service wiki --entity page
  greyseal-ingest notes.md --kind file --publish
        """
    )

    parser.add_argument("locator", help="URL, file path or directory of files")
    parser.add_argument(
        "--kind",
        choices=[k.value for k in SourceKind if k is not SourceKind.UNSPECIFIED],
        default=SourceKind.FILE.value,
        help="Resource kind (default: file)"
    )
    parser.add_argument("--service", default="cli", help="Owning service name (default: cli)")
    parser.add_argument("--entity", default="", help="Entity the resource belongs to")
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish to the resource topic for a worker instead of ingesting inline"
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

    try:
        config = load_config(args.config)
        if args.publish and refuse_memory_bus(config, "publish resources"):
            return 1

        from greyseal.security import resolve_allowed_base_paths

        resources = build_resources(
            args.locator,
            SourceKind.parse(args.kind),
            args.service,
            args.entity,
            resolve_allowed_base_paths(config.security.allowed_base_paths),
        )
        if not resources:
            print(f"No supported files found in {args.locator}", file=sys.stderr)
            return 1

        if args.publish:
            from greyseal.app import create_bus
            from greyseal.messaging.codec import encode_resource

            bus = create_bus(config)
            try:
                for resource in resources:
                    bus.publish(config.bus.resource_topic, encode_resource(resource))
            finally:
                bus.close()
            print(f"Published {len(resources)} resource(s) to {config.bus.resource_topic}", file=sys.stderr)
            return 0

        from greyseal.app import GreySealApp

        app = GreySealApp.from_config(config)
        total_chunks = 0
        failed = 0
        try:
            for resource in resources:
                try:
                    _, report = app.resources.create(resource)
                except GreySealError as e:
                    # One bad file in a directory should not abort the rest
                    if len(resources) == 1:
                        raise
                    failed += 1
                    print(f"Failed to ingest {resource.locator}: {e}", file=sys.stderr)
                    continue

                total_chunks += report.chunks_stored
                if report.skipped:
                    print(f"Resource {resource.locator} had no content to ingest", file=sys.stderr)
                else:
                    print(
                        f"Ingested {resource.locator} as {resource.id}: {report.chunks_stored} chunks"
                        + (f" ({report.degraded_chunks} with fallback embeddings)" if report.degraded_chunks else ""),
                        file=sys.stderr
                    )
        finally:
            app.close()

        if len(resources) > 1:
            print(
                f"Ingested {len(resources) - failed}/{len(resources)} resources, {total_chunks} chunks total",
                file=sys.stderr
            )
        return 1 if failed else 0

    except GreySealError as e:
        print(f"Error during ingestion: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
