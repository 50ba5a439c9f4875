#!/usr/bin/env python3
"""
Blockcraft - Block Transformation Engine

Command-line driver for the Blockcraft engine. Reads one interaction
request from a JSON file (or stdin), executes it and prints the result as
JSON, so rule tables and strategies can be exercised without an editor.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import pydantic

from blockcraft import __version__
from blockcraft.config import config
from blockcraft.interactions import InteractionManager
from blockcraft.models import InteractionRequest


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, str(config.get("logging.level", "INFO")).upper(), logging.INFO)
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.get("logging.file")

    # stdout carries the JSON result
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=format_str, handlers=handlers)


def load_request(source: str) -> Dict[str, Any]:
    """
    Read a request document.

    Args:
        source: Path to a JSON file, or "-" for stdin

    Returns:
        The parsed JSON object
    """
    if source == "-":
        return json.load(sys.stdin)

    with open(source, 'r', encoding='utf-8') as f:
        return json.load(f)


def suggest(manager: InteractionManager, request: InteractionRequest) -> Dict[str, Any]:
    """Collect suggestions for the request's first source block (and its target, if any)."""
    block = request.source_blocks[0]
    suggestions: Dict[str, Any] = {
        "blockId": block.id,
        "splits": [s.to_wire() for s in manager.splitter.suggest_splits(block)],
        "conversions": [s.to_wire() for s in manager.converter.suggest_conversions(block)]
    }

    if request.target_block is not None:
        merge = manager.merger.suggest_merge(request.source_blocks, request.target_block)
        suggestions["merge"] = merge.to_wire() if merge else None

    return suggestions


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Blockcraft - Block Transformation Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py request.json                     # Execute one interaction
  python main.py request.json --suggest           # Show split/conversion suggestions
  cat request.json | python main.py -             # Read the request from stdin
  python main.py request.json --config my.yaml    # Use another configuration file
        """
    )

    parser.add_argument(
        "request",
        help="Path to a JSON interaction request, or - for stdin"
    )

    parser.add_argument(
        "--suggest",
        action="store_true",
        help="Print suggestions for the first source block instead of executing"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to a YAML configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Blockcraft {__version__}"
    )

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_arguments()

    if args.config:
        config.config_path = Path(args.config)
        config.reload()

    setup_logging()

    try:
        raw_request = load_request(args.request)
    except (OSError, json.JSONDecodeError) as e:
        logging.error(f"Could not read request {args.request}: {e}")
        sys.exit(2)

    manager = InteractionManager()

    if args.suggest:
        try:
            request = InteractionRequest.model_validate(raw_request)
        except pydantic.ValidationError as e:
            logging.error(f"Invalid interaction request: {e}")
            sys.exit(2)

        if not request.source_blocks:
            logging.error("Suggestions need at least one source block")
            sys.exit(2)

        print(json.dumps(suggest(manager, request), indent=2, ensure_ascii=False))
        return

    result = manager.execute_interaction(raw_request)
    print(json.dumps(result.to_wire(), indent=2, ensure_ascii=False))

    if not result.succeeded:
        sys.exit(1)


if __name__ == "__main__":
    main()
