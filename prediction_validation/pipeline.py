#!/usr/bin/env python3
"""Validation pipeline: score predicted events against collected data, page by page.

Composes the engine modules in a single direction:

    page counts  -> significance.analyze_page_events   (drop noise events)
    each event   -> verdict.validate_event              (per-parameter verdicts)
    all events   -> aggregate.aggregate_results         (accuracy + suggestions)

Input is a list of pages:

    [
      {
        "page_url": "https://shop.example.com/kr/ko/product/detail?id=1",
        "page_path": "/kr/ko/product/detail",          # optional, from URL
        "group_label": "PDP",                           # optional, from path
        "event_counts": [{"event_name": "page_view", "event_count": 12000}],
        "events": [
          {"event_name": "page_view",
           "predictions": {"site_language": "ko"},      # or [{parameter_name, value, confidence}]
           "actuals": {"site_language": "ko-KR"}}
        ]
      }
    ]

Usage (CLI):
    python -m prediction_validation.pipeline --input pages.json
    python -m prediction_validation.pipeline --input pages.json --learnings output/learnings.json

Usage (import):
    from prediction_validation.pipeline import run_validation
    result = run_validation(pages)
    result["report"]["overall_accuracy"]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

from prediction_validation.aggregate import aggregate_results
from prediction_validation.config import (
    ValidationConfig,
    default_config,
    infer_group_from_path,
    load_validation_config,
)
from prediction_validation.learnings import (
    confirmed_updates,
    load_learnings,
    merge_learnings,
    save_learnings,
)
from prediction_validation.logging_setup import LOG_LEVELS, configure_logging
from prediction_validation.normalizer import is_null_value, normalize_group_label
from prediction_validation.significance import analyze_page_events, compare_event_predictions
from prediction_validation.verdict import validate_event

logger = logging.getLogger(__name__)

# Per-page failures that mean "malformed input", not a bug in the engine.
INPUT_ERRORS = (KeyError, TypeError, ValueError)


def resolve_group_label(page: Dict[str, Any], page_path: str, config: ValidationConfig) -> str:
    """Explicit label (alias-normalized) > label inferred from path > default."""
    explicit = page.get("group_label")
    if not is_null_value(explicit):
        return normalize_group_label(str(explicit), config)

    inferred = infer_group_from_path(page_path, config)
    if inferred is not None:
        return inferred

    logger.debug("No group pattern for %s; using %s", page_path, config.default_group_label)
    return config.default_group_label


def validate_page(page: Dict[str, Any], config: Optional[ValidationConfig] = None) -> Dict[str, Any]:
    """Validate every predicted event on one page.

    Events the page's traffic marks as noise are reported but not scored.
    A malformed event is logged and skipped, and unusable event_counts only
    disable noise filtering for the page. A page without page_url raises.

    Returns:
        {"page_url", "page_path", "group_label", "event_results",
         "noise_events", "event_analysis", "event_coverage"}.
        event_analysis and event_coverage are None when the page has no
        event_counts.
    """
    if config is None:
        config = default_config()

    if not isinstance(page, Mapping):
        raise TypeError(f"page must be a mapping, got {type(page).__name__}")
    page_url = page["page_url"]
    if not isinstance(page_url, str):
        raise TypeError(f"page_url must be a string, got {type(page_url).__name__}")
    page_path = str(page.get("page_path") or urlparse(page_url).path or "/")
    group_label = resolve_group_label(page, page_path, config)
    events = page.get("events") or []

    event_analysis = None
    event_coverage = None
    noise_events: List[str] = []
    if page.get("event_counts"):
        predicted_names = [
            e["event_name"] for e in events
            if isinstance(e, Mapping) and not is_null_value(e.get("event_name"))
        ]
        try:
            event_analysis = analyze_page_events(page_path, page["event_counts"])
            event_coverage = compare_event_predictions(event_analysis, predicted_names, config)
        except INPUT_ERRORS as exc:
            # Unusable counts only cost this page its noise filter.
            logger.warning("Ignoring event_counts on %s: %r", page_url, exc)
            event_analysis = None
            event_coverage = None
        else:
            noise_events = event_analysis["noise_events"]

    noise = set(noise_events)
    event_results = []
    for index, event in enumerate(events):
        try:
            event_name = event["event_name"]
            if event_name in noise:
                logger.debug("Skipping noise event %s on %s", event_name, page_url)
                continue
            event_results.append(validate_event(
                event_name,
                page_url,
                group_label,
                event.get("predictions") or {},
                event.get("actuals") or {},
                config,
            ))
        except INPUT_ERRORS as exc:
            logger.warning("Skipping malformed event #%d on %s: %r", index, page_url, exc)

    return {
        "page_url": page_url,
        "page_path": page_path,
        "group_label": group_label,
        "event_results": event_results,
        "noise_events": noise_events,
        "event_analysis": event_analysis,
        "event_coverage": event_coverage,
    }


def _page_summary(page_result: Dict[str, Any]) -> Dict[str, Any]:
    total = sum(r["total_params"] for r in page_result["event_results"])
    matched = sum(r["matched_params"] for r in page_result["event_results"])
    return {
        "page_url": page_result["page_url"],
        "page_path": page_result["page_path"],
        "group_label": page_result["group_label"],
        "events_scored": len(page_result["event_results"]),
        "total_params": total,
        "matched_params": matched,
        "accuracy": matched / total if total else 0.0,
        "noise_events": page_result["noise_events"],
        "event_coverage": page_result["event_coverage"],
    }


def run_validation(
    pages: Iterable[Dict[str, Any]],
    config: Optional[ValidationConfig] = None,
) -> Dict[str, Any]:
    """Validate all pages and aggregate every scored event into one report.

    Returns:
        {"report": ValidationReport, "pages": [per-page summary]}.
    """
    if config is None:
        config = default_config()

    event_results: List[Dict[str, Any]] = []
    summaries: List[Dict[str, Any]] = []
    for index, page in enumerate(pages):
        try:
            page_result = validate_page(page, config)
        except INPUT_ERRORS as exc:
            logger.warning("Skipping malformed page #%d: %r", index, exc)
            continue
        event_results.extend(page_result["event_results"])
        summaries.append(_page_summary(page_result))

    report = aggregate_results(event_results, config)
    logger.info(
        "Validated %d pages: overall accuracy %.1f%%",
        len(summaries), report["overall_accuracy"] * 100,
    )
    return {"report": report, "pages": summaries}


# ──────────────────────────────────────────────────
# CLI interface
# ──────────────────────────────────────────────────

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Validate predicted analytics events against collected values"
    )
    parser.add_argument(
        "--input", required=True,
        help='JSON file: list of pages (or {"pages": [...]})'
    )
    parser.add_argument("--config", default=None, help="Path to a validation rules YAML file")
    parser.add_argument(
        "--learnings", default=None,
        help="Learnings JSON file to merge this run into (created if absent)"
    )
    parser.add_argument(
        "--log-level", default="INFO", type=str.upper, choices=LOG_LEVELS,
        help="Logging level (default: INFO)"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """CLI entry point: run the pipeline and print the result as JSON."""
    args = parse_args(argv)
    configure_logging(args.log_level)

    input_path = Path(args.input)
    if not input_path.exists():
        print(json.dumps({"error": f"File not found: {args.input}"}))
        sys.exit(1)

    try:
        config = load_validation_config(args.config) if args.config else default_config()
        with open(input_path) as f:
            pages = json.load(f)
        learnings = load_learnings(args.learnings) if args.learnings else None
    except (FileNotFoundError, ValueError) as exc:
        print(json.dumps({"error": str(exc)}))
        sys.exit(1)

    if isinstance(pages, dict):
        pages = pages.get("pages", [])
    if not isinstance(pages, list):
        print(json.dumps({"error": f"Expected a list of pages in {args.input}"}))
        sys.exit(1)

    result = run_validation(pages, config)

    if learnings is not None:
        learnings = merge_learnings(learnings, result["report"])
        save_learnings(args.learnings, learnings)
        result["learnings"] = {
            "path": args.learnings,
            "runs": len(learnings["history"]),
            "confirmed_updates": confirmed_updates(learnings),
        }

    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
