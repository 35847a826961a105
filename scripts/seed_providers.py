#!/usr/bin/env python3
"""Seed the readiness database from archived JSON exports.

Usage::

    python scripts/seed_providers.py \
        --providers data/_archive/providers.json \
        [--history data/_archive/compliance-history.json] \
        [--database-url sqlite:////tmp/readiness.db]

``providers.json`` may be a list of provider records, ``{"providers": [...]}``
or a mapping keyed by provider id.  ``compliance-history.json`` holds
``{"history": {"<providerId>": {"YYYY-MM": score}}}``.  Both tables are
upserted so the script can be re-run safely.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from medicaidready.db.session import configure_engine, session_scope  # noqa: E402
from medicaidready.seed import read_json, seed  # noqa: E402

LOGGER = logging.getLogger("seed_providers")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--providers", type=Path, required=True, help="Path to the providers archive JSON")
    parser.add_argument("--history", type=Path, help="Path to the compliance history archive JSON")
    parser.add_argument(
        "--database-url",
        default=os.getenv("MEDICAIDREADY_DATABASE_URL"),
        help="SQLAlchemy URL; defaults to the configured application database",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        providers_raw = read_json(args.providers)
        history_raw = read_json(args.history)
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.error("Unable to read archive: %s", exc)
        return 1

    configure_engine(args.database_url)
    try:
        with session_scope() as session:
            report = seed(session, providers_raw, history_raw)
    except SQLAlchemyError as exc:
        LOGGER.error("Seeding failed: %s", exc)
        return 1

    LOGGER.info(
        "Seeded %d providers and %d history rows",
        report.providers_upserted,
        report.history_upserted,
    )
    print(json.dumps(report.to_dict()))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
