"""
Command-line entry point.

Usage
-----
mailpost                 # reads ./conf.json
mailpost -c /etc/mailpost/conf.json

Serves the webhook on port 5555 until terminated. A missing or invalid
config file stops the process before anything is served.
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

import uvicorn

from mailpost.config import DEFAULT_CONFIG_PATH, load_settings
from mailpost.errors import ConfigError
from mailpost.main import SERVICE_PORT, create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mailpost",
        description="Publish emails received through the Mailgun webhook as posts on GitHub.",
    )
    parser.add_argument(
        "-c",
        dest="config",
        default=DEFAULT_CONFIG_PATH,
        metavar="PATH",
        help=f"Location of config file (default: {DEFAULT_CONFIG_PATH})",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        logger.error(f"Cannot start: {exc}")
        return 1

    app = create_app(settings)
    uvicorn.run(app, host="0.0.0.0", port=SERVICE_PORT)
    return 0


if __name__ == "__main__":
    sys.exit(main())
