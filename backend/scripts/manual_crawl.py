#!/usr/bin/env python3
"""
Crawl configured sources once and print what each strategy chain returned.

Usage:
    python scripts/manual_crawl.py [--source "Anthropic Blog" ...] [--no-persist]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agimonitor.acquisition.crawl import run_crawl
from agimonitor.acquisition.sources import load_sources
from agimonitor.db import init_db
from agimonitor.settings import Settings


def main() -> int:
    parser = argparse.ArgumentParser(description="Crawl AI research sources")
    parser.add_argument("--source", "-s", action="append", default=[], help="Source name (repeatable)")
    parser.add_argument("--no-persist", action="store_true", help="Do not write documents to the database")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = Settings()
    sources = load_sources(settings.sources_path)
    if args.source:
        wanted = {s.lower() for s in args.source}
        sources = [s for s in sources if s.name.lower() in wanted]
    if not sources:
        print("No sources to crawl.")
        return 1

    if not args.no_persist:
        init_db(settings.db_path)

    report = asyncio.run(run_crawl(settings, sources, persist=not args.no_persist))

    print(f"\n{'=' * 60}")
    for name, info in report.per_source().items():
        status = info["refused_reason"] or info["strategy"] or "no results"
        print(f"{name:32s} {info['documents']:4d} docs  via {status}")
    if report.stored:
        print(
            f"\nStored: {report.stored.inserted} new, "
            f"{report.stored.updated} updated, {report.stored.unchanged} unchanged"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
