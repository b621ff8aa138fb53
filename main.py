#!/usr/bin/env python3
"""HRV report -- CLI entry point.

Usage:
    python main.py --customer-id c-001 --visits-json visits.json
    python main.py --visit-id v-003 --visits-json visits.json --seed 7
    python main.py --fallback-json walk_in.json --no-save
    python main.py --visit-id v-003 --store rest
    python main.py --visit-id v-003 --store rest --view
    python main.py --help

Generates the post-treatment report for one visit (or for a customer's
latest visit), prints the result as JSON and saves the report text
through the configured store.  Without a Gemini/Claude key the report
and next action come from the rule-based fallbacks.

Requirements:
    pip install -e .
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Early setup: configure logging before any hrv_report imports
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("hrv_report.main")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="HRV report -- post-treatment report generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  python main.py --customer-id c-001 --visits-json visits.json
  python main.py --visit-id v-003 --visits-json visits.json --seed 7
  python main.py --fallback-json walk_in.json --no-save
""",
    )
    parser.add_argument(
        "--customer-id", type=str, default="",
        help="Generate for this customer's most recent visit",
    )
    parser.add_argument(
        "--visit-id", type=str, default="",
        help="Generate for this visit (previous visit = the one right before it)",
    )
    parser.add_argument(
        "--fallback-json", type=str, default="",
        help="JSON file of fallback values used when the store has no visit data",
    )
    parser.add_argument(
        "--visits-json", type=str, default="",
        help="JSON list of raw visit records to seed the in-memory store",
    )
    parser.add_argument(
        "--store", choices=("memory", "rest"), default="",
        help="Store backend (default: store_backend from config/global_config.yml)",
    )
    parser.add_argument(
        "--no-save", action="store_true",
        help="Do not persist the generated report",
    )
    parser.add_argument(
        "--view", action="store_true",
        help="Print the saved report view for --visit-id instead of generating",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for the canned fallback choice (reproducible output)",
    )
    parser.add_argument(
        "--llm-provider", type=str, default="",
        help=(
            "LLM provider to use: 'gemini' or 'claude'. "
            "If not set, auto-detected from available API keys."
        ),
    )
    parser.add_argument(
        "--llm-model", type=str, default="",
        help=(
            "LLM model name to use (e.g. gemini-2.5-flash, claude-sonnet-4-20250514). "
            "Use 'auto' to let the factory pick the best model."
        ),
    )
    parser.add_argument(
        "--output", type=str, default="",
        help="Also write the result JSON to this file",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging",
    )
    return parser


def _load_json(path: str):
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def _build_stores(backend: str, args: argparse.Namespace, secrets: dict[str, str]):
    """Return ``(visit_store, report_store)`` for *backend*."""
    if backend == "rest":
        from hrv_report.storage.rest_store import RestReportStore, RestVisitStore
        return RestVisitStore.from_secrets(secrets), RestReportStore.from_secrets(secrets)

    from hrv_report.storage.memory import InMemoryStore
    store = InMemoryStore.from_json_file(args.visits_json) if args.visits_json else InMemoryStore()
    return store, store


def _emit(payload: dict, output: str) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    print(text)
    if output:
        out = Path(output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text + "\n", encoding="utf-8")
        logger.info("Result written to %s", out)


def main() -> int:
    """Run the report pipeline once."""
    args = _build_parser().parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # ------------------------------------------------------------------
    # Apply LLM CLI overrides to environment (before any LLM usage)
    # ------------------------------------------------------------------
    if args.llm_provider:
        os.environ["LLM_PROVIDER"] = args.llm_provider.strip().lower()
    if args.llm_model:
        os.environ["LLM_MODEL"] = args.llm_model.strip()

    from hrv_report.config_loader import get_global_config
    from hrv_report.http_utils import flush_request_log
    from hrv_report.secrets_loader import load_secrets
    from hrv_report.storage.base import StoreError

    cfg = get_global_config()
    secrets = load_secrets()
    backend = args.store or cfg.get("store_backend", "memory")

    try:
        visit_store, report_store = _build_stores(backend, args, secrets)
    except (OSError, ValueError, StoreError) as exc:
        logger.error("Could not set up the %s store: %s", backend, exc)
        return 1

    # ------------------------------------------------------------------
    # Report view only
    # ------------------------------------------------------------------
    if args.view:
        if not args.visit_id:
            logger.error("--view needs --visit-id")
            return 1
        from hrv_report.report.report_generator import build_report_view
        try:
            view = build_report_view(
                visit_store, report_store, args.visit_id,
                duplicate_policy=cfg.get("duplicate_phase_rows", "first"),
            )
        except StoreError as exc:
            logger.error("Report view failed: %s", exc)
            return 1
        if view is None:
            logger.error("Visit %s not found", args.visit_id)
            return 1
        _emit(view, args.output)
        return 0

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------
    import random

    from hrv_report.clients.llm_factory import create_llm_client
    from hrv_report.report.report_generator import GenerateReportRequest, ReportPipeline
    from hrv_report.visits.assembler import FallbackData

    fallback = FallbackData()
    if args.fallback_json:
        try:
            fallback = FallbackData.from_dict(_load_json(args.fallback_json))
        except (OSError, ValueError) as exc:
            logger.error("Could not read fallback data %s: %s", args.fallback_json, exc)
            return 1

    if not (args.customer_id or args.visit_id or args.fallback_json):
        logger.error("Give --customer-id, --visit-id or --fallback-json")
        return 1

    generator = create_llm_client(secrets)
    rng = random.Random(args.seed) if args.seed is not None else None
    pipeline = ReportPipeline(generator, visit_store, report_store, rng=rng, config=cfg)

    request = GenerateReportRequest(
        customer_id=args.customer_id or None,
        visit_id=args.visit_id or None,
        fallback=fallback,
        save=not args.no_save,
    )
    result = pipeline.generate_report(request)

    if backend == "rest":
        flush_request_log()

    _emit(result.to_dict(), args.output)

    logger.info(
        "Done: calls=%d fallback=%s saved=%s",
        result.generation_calls, result.used_fallback, result.saved,
    )
    if result.persistence_error:
        logger.error("Report generated but not saved: %s", result.persistence_error)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
