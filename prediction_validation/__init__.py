"""Prediction Validation Engine: Python toolkit.

Checks predicted analytics event parameters against the values the analytics
platform actually collected. Each module can run as a CLI script that reads
JSON input and prints JSON to stdout.
"""

from prediction_validation.aggregate import aggregate_results, merge_reports
from prediction_validation.normalizer import normalize_value
from prediction_validation.pipeline import run_validation, validate_page
from prediction_validation.verdict import classify_parameter, validate_event

__all__ = [
    "aggregate_results",
    "classify_parameter",
    "merge_reports",
    "normalize_value",
    "run_validation",
    "validate_event",
    "validate_page",
]
