#!/usr/bin/env python3
"""Parse supplier quote emails from a JSON file and print the results.

Input is a JSON object or list of objects with subject, body, from and
received_at keys. Output is a JSON list of parse results.

Usage:
    python scripts/parse_quotes.py emails.json
    python scripts/parse_quotes.py emails.json --tiers --metrics
"""

import json
import logging
from pathlib import Path
from typing import Any

from bids.extraction.metrics import get_metrics
from bids.extraction.schema import EmailInput
from bids.extraction.service import QuoteEmailParser
from bids.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)


def load_emails(input_file: Path) -> list[EmailInput]:
    """Load one email or a list of emails from a JSON file.

    Args:
        input_file: Path to JSON file

    Returns:
        Emails in file order
    """
    with open(input_file, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = [data]
    return [EmailInput.model_validate(item) for item in data]


def parse_emails(
    emails: list[EmailInput], settings: Settings, with_tiers: bool = False
) -> list[dict[str, Any]]:
    """Parse emails and return JSON-serialisable results.

    Args:
        emails: Emails to parse
        settings: Application settings
        with_tiers: Also extract volume pricing tiers

    Returns:
        One dumped ParseResult per email
    """
    parser = QuoteEmailParser(settings)
    parse = parser.parse_with_tiers if with_tiers else parser.parse
    return [parse(email).model_dump(mode="json") for email in emails]


if __name__ == "__main__":
    import argparse

    arg_parser = argparse.ArgumentParser(description="Parse supplier quote emails")
    arg_parser.add_argument("input", type=Path, help="JSON file with one or more emails")
    arg_parser.add_argument(
        "--tiers",
        action="store_true",
        help="Also extract volume pricing tiers",
    )
    arg_parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics after the results",
    )
    args = arg_parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    emails = load_emails(args.input)
    logger.info(f"Loaded {len(emails)} emails from {args.input}")
    print(json.dumps(parse_emails(emails, settings, with_tiers=args.tiers), indent=2))

    if args.metrics:
        payload, _ = get_metrics()
        print(payload.decode("utf-8"))
