"""
Grey Seal Ask - Answer a question from the knowledge base

Usage:
    greyseal-ask "What color is the sky?"
    greyseal-ask "How do I reset my password?" --role "a support engineer"
    greyseal-ask "What changed in 2.0?" --json
"""

import argparse
import json
import logging
import sys
import uuid

from greyseal.cli import refuse_memory_bus
from greyseal.config import load_config
from greyseal.errors import GreySealError
from greyseal.models import Question


def main():
    parser = argparse.ArgumentParser(
        description="Ask the Grey Seal knowledge base a question",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  greyseal-ask "What color is the sky?"
  greyseal-ask "How do I reset my password?" --role "a support engineer"
  greyseal-ask "What changed in 2.0?" --json
        """
    )

    parser.add_argument("question", help="Question to answer")
    parser.add_argument(
        "--role",
        default="a helpful assistant",
        help="Role the answer should take (default: a helpful assistant)"
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish to the question topic for a worker instead of answering inline"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the answer as JSON"
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

    question = Question(id=str(uuid.uuid4()), content=args.question, role_description=args.role)

    try:
        config = load_config(args.config)

        if args.publish:
            if refuse_memory_bus(config, "publish questions"):
                return 1

            from greyseal.app import create_bus
            from greyseal.messaging.codec import encode_question

            bus = create_bus(config)
            try:
                bus.publish(config.bus.question_topic, encode_question(question))
            finally:
                bus.close()
            print(f"Published question to {config.bus.question_topic}", file=sys.stderr)
            return 0

        from greyseal.app import GreySealApp

        app = GreySealApp.from_config(config)
        try:
            answer = app.questions.ask(question)
        finally:
            app.close()

    except GreySealError as e:
        print(f"Error answering question: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({
            "id": answer.id,
            "question_id": answer.question_id,
            "message": answer.message,
            "references": list(answer.references),
            "degraded": answer.degraded,
        }, indent=2))
        return 0

    print(answer.message)
    if answer.references:
        print("References:")
        for ref in answer.references:
            print(f"  - {ref}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
