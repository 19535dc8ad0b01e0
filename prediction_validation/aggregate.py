#!/usr/bin/env python3
"""Aggregate per-event verdicts into accuracy statistics and rule suggestions.

Takes the EventValidationResult dicts produced by verdict.validate_event()
for many pages and reduces them in one pass into:

- overall accuracy (matched / total parameters)
- accuracy per parameter name and per group label (content group)
- counts of MISSING_PREDICTION / MISSING_ACTUAL per parameter
- rule-update suggestions for mismatch patterns that recur

Only MISMATCH verdicts feed the suggestions. A missing prediction or a
missing collected value is a different failure (coverage, not a wrong rule)
and is reported through missing_counts instead.

Promoting a suggestion to "confirmed" across runs is the caller's decision
(see learnings.py); this module only exposes affected_count.

Usage (CLI):
    python -m prediction_validation.aggregate --input event_results.json

Usage (import):
    from prediction_validation.aggregate import aggregate_results
    report = aggregate_results(event_results)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from prediction_validation.config import ValidationConfig, default_config, load_validation_config
from prediction_validation.logging_setup import LOG_LEVELS, configure_logging
from prediction_validation.normalizer import NormalizationRule, build_rules, parameter_class
from prediction_validation.verdict import MISMATCH, MISSING_ACTUAL, MISSING_PREDICTION

logger = logging.getLogger(__name__)


# A mismatch pattern must recur this many times before it becomes a suggestion.
SUGGESTION_MIN_OCCURRENCES = 2

# Example (predicted, actual) pairs kept per mismatch pattern.
MAX_PATTERN_EXAMPLES = 3

SUGGESTION_TYPE = "RULE_UPDATE"

RULE_NORMALIZE_CASE = "normalize case"
RULE_UNIFY_LOCALE = "unify locale code format"
RULE_NORMALIZE_NUMERIC = "normalize numeric format"


def _ratio(matched: int, total: int) -> float:
    return matched / total if total else 0.0


def _bump(table: Dict[str, Dict[str, Any]], key: str, total: int, matched: int) -> None:
    entry = table.setdefault(key, {"total": 0, "matched": 0, "accuracy": 0.0})
    entry["total"] += total
    entry["matched"] += matched
    entry["accuracy"] = _ratio(entry["matched"], entry["total"])


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def suggest_rule(
    parameter_name: str,
    examples: List[Dict[str, Any]],
    config: Optional[ValidationConfig] = None,
    rules: Optional[Sequence[NormalizationRule]] = None,
) -> str:
    """Derive a rule-update hint from recurring mismatch examples.

    Checks, in order: case-only differences, locale parameters, numeric
    parameters. Anything else gets the first example spelled out so a
    person can write the rule.
    """
    predicted = [_as_text(e.get("predicted")) for e in examples]
    actual = [_as_text(e.get("actual")) for e in examples]

    if examples and all(p.lower() == a.lower() for p, a in zip(predicted, actual)):
        return RULE_NORMALIZE_CASE

    param_class = parameter_class(parameter_name, config, rules)
    if param_class == "locale":
        return RULE_UNIFY_LOCALE
    if param_class == "numeric":
        return RULE_NORMALIZE_NUMERIC

    first_predicted = predicted[0] if predicted else ""
    first_actual = actual[0] if actual else ""
    return f"review value pattern: predicted={first_predicted}, actual={first_actual}"


def aggregate_results(
    event_results: Iterable[Dict[str, Any]],
    config: Optional[ValidationConfig] = None,
) -> Dict[str, Any]:
    """Reduce event validation results into a ValidationReport.

    Args:
        event_results: EventValidationResult dicts (see verdict.validate_event).
        config: Rule tables used to classify parameters for suggestions.

    Returns:
        {"overall_accuracy", "total_events", "total_params", "matched_params",
         "event_results", "parameter_accuracy", "group_accuracy",
         "missing_counts", "improvements"}.
        The input results are not modified.
    """
    if config is None:
        config = default_config()
    rules = build_rules(config)

    results = list(event_results)
    total_params = 0
    total_matched = 0
    parameter_accuracy: Dict[str, Dict[str, Any]] = {}
    group_accuracy: Dict[str, Dict[str, Any]] = {}
    missing_counts: Dict[str, Dict[str, int]] = {}
    mismatch_patterns: Dict[str, Dict[str, Any]] = {}

    for result in results:
        total_params += result["total_params"]
        total_matched += result["matched_params"]

        for param in result["parameters"]:
            name = param["parameter_name"]
            _bump(parameter_accuracy, name, 1, 1 if param["match"] else 0)

            verdict = param["verdict"]
            if verdict == MISMATCH:
                key = f"{result['event_name']}:{name}"
                pattern = mismatch_patterns.setdefault(
                    key,
                    {"event_name": result["event_name"], "parameter_name": name, "count": 0, "examples": []},
                )
                pattern["count"] += 1
                if len(pattern["examples"]) < MAX_PATTERN_EXAMPLES:
                    pattern["examples"].append({
                        "predicted": param["predicted_raw"],
                        "actual": param["actual_raw"],
                    })
            elif verdict in (MISSING_PREDICTION, MISSING_ACTUAL):
                counts = missing_counts.setdefault(name, {"missing_prediction": 0, "missing_actual": 0})
                if verdict == MISSING_PREDICTION:
                    counts["missing_prediction"] += 1
                else:
                    counts["missing_actual"] += 1

        _bump(group_accuracy, result["group_label"], result["total_params"], result["matched_params"])

    improvements = []
    for pattern in mismatch_patterns.values():
        if pattern["count"] < SUGGESTION_MIN_OCCURRENCES:
            continue
        improvements.append({
            "type": SUGGESTION_TYPE,
            "parameter_name": pattern["parameter_name"],
            "event_name": pattern["event_name"],
            "suggested_rule": suggest_rule(pattern["parameter_name"], pattern["examples"], config, rules),
            "reason": f"{pattern['count']} mismatches",
            "affected_count": pattern["count"],
            "examples": pattern["examples"],
        })

    # Most frequent first; ties broken by name so output is stable.
    improvements.sort(key=lambda s: (-s["affected_count"], s["event_name"], s["parameter_name"]))

    logger.info(
        "Aggregated %d event results: %d/%d parameters matched, %d suggestions",
        len(results), total_matched, total_params, len(improvements),
    )

    return {
        "overall_accuracy": _ratio(total_matched, total_params),
        "total_events": len(results),
        "total_params": total_params,
        "matched_params": total_matched,
        "event_results": results,
        "parameter_accuracy": parameter_accuracy,
        "group_accuracy": group_accuracy,
        "missing_counts": missing_counts,
        "improvements": improvements,
    }


def merge_reports(*reports: Dict[str, Any], config: Optional[ValidationConfig] = None) -> Dict[str, Any]:
    """Combine reports built from disjoint slices of the event stream.

    Concurrent callers can each aggregate their own pages; re-reducing the
    concatenated event results gives the same counters as one big pass.
    """
    combined: List[Dict[str, Any]] = []
    for report in reports:
        combined.extend(report["event_results"])
    return aggregate_results(combined, config)


# ──────────────────────────────────────────────────
# CLI interface
# ──────────────────────────────────────────────────

def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Aggregate event validation results into accuracy and rule suggestions"
    )
    parser.add_argument(
        "--input", required=True,
        help="JSON file with a list of event validation results"
    )
    parser.add_argument("--config", default=None, help="Path to a validation rules YAML file")
    parser.add_argument(
        "--log-level", default="WARNING", type=str.upper, choices=LOG_LEVELS,
        help="Logging level (default: WARNING)"
    )
    return parser.parse_args()


def main():
    """CLI entry point: load event results, aggregate, print JSON to stdout."""
    args = parse_args()
    configure_logging(args.log_level)

    input_path = Path(args.input)
    if not input_path.exists():
        print(json.dumps({"error": f"File not found: {args.input}"}))
        sys.exit(1)

    try:
        config = load_validation_config(args.config) if args.config else default_config()
        with open(input_path) as f:
            event_results = json.load(f)
    except (FileNotFoundError, ValueError) as exc:
        print(json.dumps({"error": str(exc)}))
        sys.exit(1)

    report = aggregate_results(event_results, config)
    print(json.dumps(report, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
