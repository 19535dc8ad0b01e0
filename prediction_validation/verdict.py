#!/usr/bin/env python3
"""Verdict classification for predicted vs collected parameter values.

Each (predicted, actual) pair for one parameter gets exactly one verdict:

    CORRECT               values agree after normalization (or both are unset)
    CORRECT_DATA_MISSING  prediction present, nothing collected, and the
                          parameter is derivable from URL/page context
    MISMATCH              both present, values disagree
    MISSING_PREDICTION    collected value present, nothing predicted
    MISSING_ACTUAL        prediction present, nothing collected

Precedence is fixed (see classify_parameter). Swapping the "predicted
missing" and "actual missing" branches changes the outcome for pages that
have no live data yet.

Usage (CLI):
    python -m prediction_validation.verdict --parameter price --predicted 135,000 --actual 135000

Usage (import):
    from prediction_validation.verdict import classify_parameter, validate_event
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from prediction_validation.config import ValidationConfig, default_config, load_validation_config
from prediction_validation.logging_setup import LOG_LEVELS, configure_logging
from prediction_validation.normalizer import (
    NormalizationRule,
    build_rules,
    is_null_value,
    normalize_value,
    parameter_class,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────
# Verdicts and thresholds
# ──────────────────────────────────────────────────

CORRECT = "CORRECT"
CORRECT_DATA_MISSING = "CORRECT_DATA_MISSING"
MISMATCH = "MISMATCH"
MISSING_PREDICTION = "MISSING_PREDICTION"
MISSING_ACTUAL = "MISSING_ACTUAL"

VERDICTS = frozenset({CORRECT, CORRECT_DATA_MISSING, MISMATCH, MISSING_PREDICTION, MISSING_ACTUAL})
MATCHING_VERDICTS = frozenset({CORRECT, CORRECT_DATA_MISSING})

# Numeric parameters match when within 1% of the larger magnitude.
NUMERIC_RELATIVE_TOLERANCE = 0.01

REASON_CASE = "case difference"
REASON_NUMERIC_FORMAT = "format difference"
REASON_LOCALE_FORMAT = "locale format difference"
REASON_PARTIAL = "partial string difference"
REASON_DIFFERENT = "value differs"
REASON_NO_PREDICTION = "no predicted value"
REASON_NO_ACTUAL = "no collected value"
REASON_DATA_MISSING = "prediction derivable from context; platform has no data"


class Confidence(str, Enum):
    """Predictor confidence for one parameter. SKIP excludes it from comparison."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: Any) -> Optional["Confidence"]:
        """Parse a confidence label; None for missing.

        Raises:
            ValueError: For a label that is not one of high/medium/low/skip.
        """
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        label = str(value).strip().lower()
        if not label:
            return None
        return cls(label)


# ──────────────────────────────────────────────────
# Comparison helpers
# ──────────────────────────────────────────────────

def _to_number(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def numeric_close(predicted: str, actual: str, tolerance: float = NUMERIC_RELATIVE_TOLERANCE) -> bool:
    """True if both parse as numbers within `tolerance` relative difference."""
    p = _to_number(predicted)
    a = _to_number(actual)
    if p is None or a is None:
        return False
    return abs(p - a) <= max(abs(p), abs(a)) * tolerance


def _is_substring_related(predicted: str, actual: str) -> bool:
    return predicted in actual or actual in predicted


def values_match(predicted: str, actual: str, param_class: str) -> bool:
    """Generic comparison of two normalized, non-null values."""
    if predicted == actual:
        return True
    if param_class == "numeric" and numeric_close(predicted, actual):
        return True
    return _is_substring_related(predicted, actual)


def discrepancy_reason(predicted: str, actual: str, param_class: str) -> str:
    """Explain a mismatch between two normalized values, most specific first."""
    if predicted.lower() == actual.lower():
        return REASON_CASE
    if param_class == "numeric":
        return REASON_NUMERIC_FORMAT
    if param_class == "locale":
        return REASON_LOCALE_FORMAT
    if _is_substring_related(predicted, actual):
        return REASON_PARTIAL
    return REASON_DIFFERENT


def _comparison(
    parameter_name: str,
    predicted_raw: Any,
    actual_raw: Any,
    normalized_predicted: Optional[str],
    normalized_actual: Optional[str],
    verdict: str,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "parameter_name": parameter_name,
        "predicted_raw": predicted_raw,
        "actual_raw": actual_raw,
        "normalized_predicted": normalized_predicted,
        "normalized_actual": normalized_actual,
        "match": verdict in MATCHING_VERDICTS,
        "verdict": verdict,
        "discrepancy_reason": reason,
    }


# ──────────────────────────────────────────────────
# Classification
# ──────────────────────────────────────────────────

def classify_parameter(
    parameter_name: str,
    predicted_raw: Any,
    actual_raw: Any,
    config: Optional[ValidationConfig] = None,
    rules: Optional[Sequence[NormalizationRule]] = None,
) -> Dict[str, Any]:
    """Classify one predicted/actual pair.

    Precedence (first match wins):
    1. both unset                       -> CORRECT
    2. prediction unset                 -> MISSING_PREDICTION
    3. actual unset                     -> CORRECT_DATA_MISSING if derivable,
                                           else MISSING_ACTUAL
    4. group-label parameter            -> actual OTHERS is replaced by the
                                           prediction, then exact compare
    5. anything else                    -> exact / numeric tolerance / substring

    Args:
        parameter_name: Parameter name.
        predicted_raw: Predicted value (str, number or None).
        actual_raw: Collected value (str, number or None).
        config: Rule tables. Defaults to the bundled validation_rules.yaml.
        rules: Pre-built normalization rules; built from config if omitted.

    Returns:
        ParameterComparison dict: parameter_name, predicted_raw, actual_raw,
        normalized_predicted, normalized_actual, match, verdict,
        discrepancy_reason.
    """
    if config is None:
        config = default_config()
    if rules is None:
        rules = build_rules(config)

    predicted = normalize_value(parameter_name, predicted_raw, config, rules)
    actual = normalize_value(parameter_name, actual_raw, config, rules)

    if predicted is None and actual is None:
        return _comparison(parameter_name, predicted_raw, actual_raw, None, None, CORRECT)

    if predicted is None:
        return _comparison(
            parameter_name, predicted_raw, actual_raw, None, actual,
            MISSING_PREDICTION, REASON_NO_PREDICTION,
        )

    if actual is None:
        if config.is_derivable(parameter_name):
            return _comparison(
                parameter_name, predicted_raw, actual_raw, predicted, None,
                CORRECT_DATA_MISSING, REASON_DATA_MISSING,
            )
        return _comparison(
            parameter_name, predicted_raw, actual_raw, predicted, None,
            MISSING_ACTUAL, REASON_NO_ACTUAL,
        )

    param_class = parameter_class(parameter_name, config, rules)

    if param_class == "group_label":
        # OTHERS means the platform failed to classify the page, not that
        # the prediction was wrong.
        if actual == config.others_sentinel:
            actual = predicted
        if predicted == actual:
            return _comparison(parameter_name, predicted_raw, actual_raw, predicted, actual, CORRECT)
        return _comparison(
            parameter_name, predicted_raw, actual_raw, predicted, actual,
            MISMATCH, discrepancy_reason(predicted, actual, param_class),
        )

    if values_match(predicted, actual, param_class):
        return _comparison(parameter_name, predicted_raw, actual_raw, predicted, actual, CORRECT)

    return _comparison(
        parameter_name, predicted_raw, actual_raw, predicted, actual,
        MISMATCH, discrepancy_reason(predicted, actual, param_class),
    )


PredictionInput = Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]


def _split_predictions(predictions: PredictionInput) -> Tuple[Dict[str, Any], List[str]]:
    """Flatten predictions into {name: value}, dropping SKIP-confidence entries.

    Accepts either a plain {name: value} mapping or a list of
    {parameter_name, value, confidence} entries. An unknown confidence label
    is logged and the parameter is still compared. An entry with no
    parameter_name is logged and skipped; the other entries are still used.

    Raises:
        TypeError: If predictions is neither a mapping nor a list of entries.
    """
    if isinstance(predictions, Mapping):
        return {str(name): value for name, value in predictions.items()}, []
    if isinstance(predictions, (str, bytes)) or not isinstance(predictions, Sequence):
        raise TypeError(f"predictions must be a mapping or a list, got {type(predictions).__name__}")

    values: Dict[str, Any] = {}
    skipped: List[str] = []
    for index, entry in enumerate(predictions):
        name = entry.get("parameter_name") if isinstance(entry, Mapping) else None
        if is_null_value(name):
            logger.warning("Skipping prediction #%d without parameter_name: %r", index, entry)
            continue
        name = str(name)
        try:
            confidence = Confidence.parse(entry.get("confidence"))
        except ValueError:
            logger.warning(
                "Unknown confidence %r for parameter %s; comparing it anyway",
                entry.get("confidence"), name,
            )
            confidence = None
        if confidence is Confidence.SKIP:
            skipped.append(name)
            continue
        values[name] = entry.get("value")
    return values, skipped


def validate_event(
    event_name: str,
    page_url: str,
    group_label: str,
    predictions: PredictionInput,
    actuals: Mapping[str, Any],
    config: Optional[ValidationConfig] = None,
) -> Dict[str, Any]:
    """Compare every parameter of one event instance on one page.

    Parameters compared are the union of predicted and collected names
    (predicted first, in input order). Parameters whose prediction carries
    confidence "skip" are left out entirely, even if a value was collected.

    Returns:
        EventValidationResult dict with per-parameter comparisons and counts.
        accuracy = matched_params / total_params (0.0 when nothing compared).

    Raises:
        TypeError: If predictions or actuals has the wrong shape.
    """
    if config is None:
        config = default_config()
    if not isinstance(actuals, Mapping):
        raise TypeError(f"actuals must be a mapping, got {type(actuals).__name__}")
    rules = build_rules(config)

    predicted_values, skipped = _split_predictions(predictions)
    skipped_set = set(skipped)
    actual_values = {str(name): value for name, value in actuals.items()}

    names = list(predicted_values)
    names.extend(n for n in actual_values if n not in predicted_values and n not in skipped_set)

    parameters = [
        classify_parameter(name, predicted_values.get(name), actual_values.get(name), config, rules)
        for name in names
    ]

    total = len(parameters)
    matched = sum(1 for p in parameters if p["match"])
    result = {
        "event_name": event_name,
        "page_url": page_url,
        "group_label": group_label,
        "parameters": parameters,
        "total_params": total,
        "matched_params": matched,
        "mismatched_params": sum(1 for p in parameters if p["verdict"] == MISMATCH),
        "missing_predictions": sum(1 for p in parameters if p["verdict"] == MISSING_PREDICTION),
        "missing_actual": sum(1 for p in parameters if p["verdict"] == MISSING_ACTUAL),
        "accuracy": matched / total if total else 0.0,
        "skipped_params": skipped,
    }
    logger.debug(
        "Validated %s on %s: %d/%d parameters matched",
        event_name, page_url, matched, total,
    )
    return result


# ──────────────────────────────────────────────────
# CLI interface
# ──────────────────────────────────────────────────

def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Classify one predicted vs collected parameter value"
    )
    parser.add_argument("--parameter", required=True, help="Parameter name (e.g., site_language)")
    parser.add_argument("--predicted", default=None, help="Predicted raw value (omit for none)")
    parser.add_argument("--actual", default=None, help="Collected raw value (omit for none)")
    parser.add_argument("--config", default=None, help="Path to a validation rules YAML file")
    parser.add_argument(
        "--log-level", default="WARNING", type=str.upper, choices=LOG_LEVELS,
        help="Logging level (default: WARNING)"
    )
    return parser.parse_args()


def main():
    """CLI entry point: classify one pair and print the comparison as JSON."""
    args = parse_args()
    configure_logging(args.log_level)

    try:
        config = load_validation_config(args.config) if args.config else default_config()
    except (FileNotFoundError, ValueError) as exc:
        print(json.dumps({"error": str(exc)}))
        sys.exit(1)

    result = classify_parameter(args.parameter, args.predicted, args.actual, config)
    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
