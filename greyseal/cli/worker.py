"""
Grey Seal Worker - Consume resource and question topics until interrupted

Usage:
    greyseal-worker
    greyseal-worker --config deploy/.greyseal.yml --verbose
"""

import argparse
import logging
import signal
import sys
import threading

from greyseal.cli import refuse_memory_bus
from greyseal.config import load_config
from greyseal.errors import GreySealError

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the Grey Seal resource and question consumers")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration file (default: search for .greyseal.yml)"
    )
    parser.add_argument(
        "--stop-timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for in-flight messages on shutdown (default: 30)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show detailed log output"
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        from greyseal.app import GreySealApp

        config = load_config(args.config)
        if refuse_memory_bus(config, "run a worker"):
            return 1
        app = GreySealApp.from_config(config)
    except GreySealError as e:
        print(f"Error starting worker: {e}", file=sys.stderr)
        return 1

    shutdown = threading.Event()

    def request_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        shutdown.set()

    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)

    workers = app.consumers()
    try:
        for worker in workers:
            worker.start()
        print(f"Consuming {config.bus.resource_topic} and {config.bus.question_topic}", file=sys.stderr)
        shutdown.wait()
    finally:
        clean = all([worker.stop(timeout=args.stop_timeout) for worker in workers])
        app.close()

    return 0 if clean else 1


if __name__ == "__main__":
    sys.exit(main())
