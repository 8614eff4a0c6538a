#!/usr/bin/env python3
"""Validate a claim JSON file and print the compliance report."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path

from claims_compliance.config import configure_logging
from claims_compliance.rules.loader import CatalogValidationError, build_engine
from claims_compliance.rules.models import ValidationInputError
from claims_compliance.schemas import parse_claim
from claims_compliance.utils import structure_claim_record


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("claim", type=Path, help="Claim JSON file")
    parser.add_argument("--catalog", help="Rule catalog file or directory (YAML/JSON)")
    parser.add_argument("--as-of", help="Evaluation date for unsubmitted claims (YYYY-MM-DD)")
    parser.add_argument(
        "--flat",
        action="store_true",
        help="Input is a flat billing record rather than a claim payload",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(args.log_level)

    if not args.claim.exists():
        print(f"Error: Claim file not found: {args.claim}")
        return 1

    try:
        with open(args.claim) as f:
            payload = json.load(f)
        as_of = date.fromisoformat(args.as_of) if args.as_of else None
    except ValueError as e:
        print(f"Error: Invalid input: {e}")
        return 2
    if args.flat:
        payload = structure_claim_record(payload)

    try:
        engine = build_engine(args.catalog)
    except (CatalogValidationError, OSError, ValueError) as e:
        print(f"Error: Could not load rule catalog: {e}")
        for error in getattr(e, "errors", []):
            print(f"  {error}")
        return 1

    try:
        claim = parse_claim(payload)
        report = engine.validate(claim, as_of=as_of)
    except ValidationInputError as e:
        print(f"Error: {e}")
        for error in e.errors:
            print(f"  {error['field']}: {error['error']}")
        return 2

    print(json.dumps(report.to_dict(), indent=2, default=str))
    return 0 if not report.blocking_failures else 3


if __name__ == "__main__":
    sys.exit(main())
