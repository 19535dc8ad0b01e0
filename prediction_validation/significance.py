#!/usr/bin/env python3
"""Event significance: separate real events from tracking noise.

An event's share of all events collected on a page tells us whether it is
real user/automation traffic or an artifact (bot hits, a misfired tag, a QA
session). Noise events are left out of prediction scoring but still reported.

    noise        share < 0.01%   likely error or test traffic
    low          share < 0.1%    collected, but rarely
    significant  everything else

This module provides three functions:
1. classify_significance:     one event's proportion and label
2. analyze_page_events:       all events on one page, sorted by share
3. compare_event_predictions: which predicted events were actually collected

Usage (CLI):
    python -m prediction_validation.significance --input counts.json --page-path /product/detail
    python -m prediction_validation.significance --input counts.json --predicted add_to_cart,purchase

Usage (import):
    from prediction_validation.significance import classify_significance
    classify_significance(500, 1_000_000)["significance"]   # -> "low"
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from prediction_validation.config import ValidationConfig, default_config, load_validation_config
from prediction_validation.logging_setup import LOG_LEVELS, configure_logging
from prediction_validation.normalizer import is_null_value

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────
# Thresholds (percent of the page's total event count)
# ──────────────────────────────────────────────────

NOISE_THRESHOLD_PCT = 0.01
LOW_SIGNIFICANCE_THRESHOLD_PCT = 0.1

NOISE = "noise"
LOW = "low"
SIGNIFICANT = "significant"


def classify_significance(event_count: float, total_count: float) -> Dict[str, Any]:
    """Classify one event's share of a page's traffic.

    Args:
        event_count: Number of times the event was collected on the page.
        total_count: Total events collected on the page.

    Returns:
        {"proportion": float (0-1), "percent": float, "significance": str}
        proportion is 0.0 when total_count is 0.
    """
    if total_count <= 0:
        proportion = 0.0
    else:
        proportion = event_count / total_count

    if proportion < 0.0 or proportion > 1.0:
        logger.warning(
            "Event count %s outside page total %s; clamping proportion",
            event_count, total_count,
        )
        proportion = min(max(proportion, 0.0), 1.0)

    percent = proportion * 100.0
    if percent < NOISE_THRESHOLD_PCT:
        significance = NOISE
    elif percent < LOW_SIGNIFICANCE_THRESHOLD_PCT:
        significance = LOW
    else:
        significance = SIGNIFICANT

    return {
        "proportion": proportion,
        "percent": percent,
        "significance": significance,
    }


def _parse_row(index: int, row: Any) -> Optional[Tuple[str, float]]:
    """(event_name, count) for a usable row; None (logged) for a malformed one."""
    if not isinstance(row, Mapping) or is_null_value(row.get("event_name")):
        logger.warning("Skipping event row #%d without event_name: %r", index, row)
        return None
    try:
        count = float(row.get("event_count") or 0)
    except (TypeError, ValueError):
        logger.warning("Skipping event row #%d with non-numeric count: %r", index, row)
        return None
    if not math.isfinite(count):
        logger.warning("Skipping event row #%d with non-finite count: %r", index, row)
        return None
    return str(row["event_name"]), count


def analyze_page_events(page_path: str, event_rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Compute every event's share of a page's traffic.

    Rows for the same event name are summed first (the analytics API can
    return one row per dimension combination).

    Args:
        page_path: Page path the counts belong to.
        event_rows: Iterable of {"event_name": str, "event_count": number}.

    Returns:
        {"page_path", "total_event_count", "events": [EventProportion sorted
        by proportion desc], "significant_events": [...], "noise_events": [...]}.
        Low-significance events are listed under significant_events.
        Rows without an event name or with a non-numeric count are logged
        and left out.
    """
    counts: Dict[str, float] = defaultdict(float)
    for index, row in enumerate(event_rows):
        parsed = _parse_row(index, row)
        if parsed is None:
            continue
        event_name, count = parsed
        counts[event_name] += count

    total = sum(counts.values())

    events = []
    for event_name, count in counts.items():
        classified = classify_significance(count, total)
        events.append({
            "event_name": event_name,
            "page_path": page_path,
            "event_count": int(count) if count.is_integer() else count,
            "proportion": classified["proportion"],
            "percent": round(classified["percent"], 4),
            "significance": classified["significance"],
        })

    events.sort(key=lambda e: (-e["proportion"], e["event_name"]))

    return {
        "page_path": page_path,
        "total_event_count": int(total) if total.is_integer() else total,
        "events": events,
        "significant_events": [e["event_name"] for e in events if e["significance"] != NOISE],
        "noise_events": [e["event_name"] for e in events if e["significance"] == NOISE],
    }


def compare_event_predictions(
    analysis: Dict[str, Any],
    predicted_events: Iterable[str],
    config: Optional[ValidationConfig] = None,
) -> Dict[str, Any]:
    """Compare the events a predictor expected against what was collected.

    Args:
        analysis: Output of analyze_page_events().
        predicted_events: Event names the predictor expects on the page.
        config: Supplies the auto-collected event set.

    Returns:
        Dict with correct_predictions (collected, noise included),
        false_predictions (never collected), missed_events (significant and
        should have been predicted), missed_auto_events (collected by the
        platform itself, not expected from a predictor) and
        missed_noise_events.
    """
    if config is None:
        config = default_config()

    significant = set(analysis["significant_events"])
    noise = set(analysis["noise_events"])
    predicted = list(dict.fromkeys(predicted_events))
    predicted_set = set(predicted)

    correct_predictions: List[str] = []
    false_predictions: List[str] = []
    for event in predicted:
        if event in significant or event in noise:
            correct_predictions.append(event)
        else:
            false_predictions.append(event)

    missed_events: List[str] = []
    missed_auto_events: List[str] = []
    for event in analysis["significant_events"]:
        if event in predicted_set:
            continue
        if event in config.auto_collected_events:
            missed_auto_events.append(event)
        else:
            missed_events.append(event)

    missed_noise_events = [e for e in analysis["noise_events"] if e not in predicted_set]

    return {
        "page_path": analysis["page_path"],
        "correct_predictions": correct_predictions,
        "false_predictions": false_predictions,
        "missed_events": missed_events,
        "missed_auto_events": missed_auto_events,
        "missed_noise_events": missed_noise_events,
    }


# ──────────────────────────────────────────────────
# CLI interface
# ──────────────────────────────────────────────────

def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Classify event significance from per-page event counts"
    )
    parser.add_argument(
        "--input", required=True,
        help='JSON file: list of {"event_name", "event_count"} rows for one page'
    )
    parser.add_argument("--page-path", default="/", help="Page path the counts belong to")
    parser.add_argument(
        "--predicted", default=None,
        help="Comma-separated predicted event names to compare against"
    )
    parser.add_argument("--config", default=None, help="Path to a validation rules YAML file")
    parser.add_argument(
        "--log-level", default="WARNING", type=str.upper, choices=LOG_LEVELS,
        help="Logging level (default: WARNING)"
    )
    return parser.parse_args()


def main():
    """CLI entry point: load counts, classify, print JSON to stdout."""
    args = parse_args()
    configure_logging(args.log_level)

    input_path = Path(args.input)
    if not input_path.exists():
        print(json.dumps({"error": f"File not found: {args.input}"}))
        sys.exit(1)

    try:
        config = load_validation_config(args.config) if args.config else default_config()
        with open(input_path) as f:
            rows = json.load(f)
    except (FileNotFoundError, ValueError) as exc:
        print(json.dumps({"error": str(exc)}))
        sys.exit(1)

    result: Dict[str, Any] = {"analysis": analyze_page_events(args.page_path, rows)}
    if args.predicted:
        predicted = [e.strip() for e in args.predicted.split(",") if e.strip()]
        result["coverage"] = compare_event_predictions(result["analysis"], predicted, config)

    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
