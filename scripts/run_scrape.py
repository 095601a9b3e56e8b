"""
Run one regulatory scrape batch from CLI.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from datetime import date

from app.scraping.errors import ConfigError
from app.services.scrape_service import ScrapeService


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got '{value}'.") from exc


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a regulatory scrape batch.")
    parser.add_argument("--source", required=True, help="Source name from the sources config.")
    parser.add_argument(
        "--target-key",
        dest="target_keys",
        action="append",
        required=True,
        help="Target key to scrape. Repeat for several targets.",
    )
    parser.add_argument("--start", type=_parse_date, default=None, help="Date range start (YYYY-MM-DD).")
    parser.add_argument("--end", type=_parse_date, default=None, help="Date range end (YYYY-MM-DD).")
    parser.add_argument("--strategy", default=None, help="Starting strategy hint.")
    parser.add_argument("--test-mode", action="store_true", help="Use fixture-backed mock strategy.")
    parser.add_argument("--strict", action="store_true", help="Disable strategy escalation.")
    parser.add_argument(
        "--allow-partial",
        action="store_true",
        help="Keep valid rows when some rows fail validation.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    service = ScrapeService()
    try:
        report = asyncio.run(
            service.run(
                source=args.source,
                target_keys=args.target_keys,
                strategy=args.strategy,
                start=args.start,
                end=args.end,
                test_mode=args.test_mode,
                strict=args.strict,
                allow_partial=args.allow_partial,
            )
        )
    except (ConfigError, ValueError, FileNotFoundError) as exc:
        parser.error(str(exc))

    payload = report.to_response()
    payload["healedSelectors"] = [
        {
            "source": healed.source,
            "field": healed.field_name,
            "brokenSelector": healed.broken_selector,
            "newSelector": healed.new_selector,
            "confidence": healed.confidence,
        }
        for healed in report.healed_selectors
    ]
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
