"""Run one unattended enrichment pass and email the review.

Usage
-----
    # Standard pass (cached page data and classifications reused)
    recipe-enricher

    # Re-scrape every source page and re-classify
    recipe-enricher --mode rescrape

    # Build the review without sending email
    recipe-enricher --dry-run
"""
from __future__ import annotations

import argparse
import json
import logging
import time

from .config import env_or_config, to_bool
from .errors import EnricherError
from .notifier import EmailNotifier, SmtpSettings
from .notion_client import NotionRecipeStore
from .orchestrator import EnrichmentMode, build_orchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enrich incomplete recipes in the Notion database.")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in EnrichmentMode],
        default=EnrichmentMode.STANDARD.value,
        help="standard reuses cached data; rescrape re-fetches pages; reclassify re-runs the AI only.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Build the review but do not send email.")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    dry_run = bool(args.dry_run or env_or_config("DRY_RUN", "runtime.dry_run", False, to_bool))
    if dry_run:
        print("[start] runtime.dry_run=true (review email disabled).", flush=True)

    started = time.monotonic()
    try:
        store = NotionRecipeStore.from_env()
    except EnricherError as exc:
        print(f"[error] {exc}", flush=True)
        return 1

    notifier = None if dry_run else EmailNotifier(SmtpSettings.from_env())
    orchestrator = build_orchestrator(store, notifier=notifier)
    mode = EnrichmentMode(args.mode)
    print(f"[start] Fetching up to {orchestrator.batch_size} incomplete recipes ({mode.value} mode) ...", flush=True)
    try:
        result = orchestrator.run_scheduled(mode)
    except Exception as exc:
        logger.exception("Enrichment run failed")
        print(f"[error] Enrichment run failed: {exc}", flush=True)
        return 1
    finally:
        store.close()

    elapsed = time.monotonic() - started
    print(f"[done] {result['processed']}/{result['total']} recipe(s) processed in {elapsed:.1f}s", flush=True)
    print("[summary] " + json.dumps({
        "Processed": result["processed"],
        "Total": result["total"],
        "Mode": mode.value,
        "Email": "skipped" if dry_run else "sent",
    }), flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
