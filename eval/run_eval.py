#!/usr/bin/env python3
"""Golden-case eval runner: replays known validation scenarios and grades the engine.

Each case in eval/cases/*.yaml holds pages (in pipeline input format) and
the outcome a correct engine must produce:

    case:      {id, name, purpose, pass_ratio}
    pages:     [...]                         # see prediction_validation.pipeline
    expected:
      overall_accuracy: 1.0
      verdicts:    {"page_view:site_language": CORRECT, ...}
      suggestions: ["add_to_cart:item_brand", ...]   # exact set
      noise_events: ["test_event", ...]

Every expectation becomes one check. A case is graded:

    GREEN   all checks pass
    YELLOW  at least pass_ratio of the checks pass (default 0.8)
    RED     anything less

A rule-table change that flips a known verdict shows up here as YELLOW or
RED before it reaches a real property.

Usage (CLI):
    python eval/run_eval.py                # Run all cases
    python eval/run_eval.py --case E2      # Run a single case
    python eval/run_eval.py --list-cases

Usage (from Python):
    from eval.run_eval import load_cases, run_case
    results = [run_case(c) for c in load_cases()]
"""

from __future__ import annotations

import argparse
import json
import sys
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional

# ── Paths ──
EVAL_DIR = Path(__file__).resolve().parent
CASES_DIR = EVAL_DIR / "cases"

sys.path.insert(0, str(EVAL_DIR.parent))

from prediction_validation.config import ValidationConfig  # noqa: E402
from prediction_validation.pipeline import run_validation  # noqa: E402

DEFAULT_PASS_RATIO = 0.8
ACCURACY_TOLERANCE = 1e-3


# ──────────────────────────────────────────────────
# Case Loader
# ──────────────────────────────────────────────────

def load_cases(cases_dir: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Load all golden cases, sorted by filename for deterministic ordering."""
    if cases_dir is None:
        cases_dir = CASES_DIR

    cases = []
    for yaml_path in sorted(cases_dir.glob("*.yaml")):
        with open(yaml_path) as f:
            case = yaml.safe_load(f)
        case["_source_file"] = yaml_path.name
        cases.append(case)

    return cases


# ──────────────────────────────────────────────────
# Scoring
# ──────────────────────────────────────────────────

def _check(name: str, expected: Any, actual: Any, passed: bool) -> Dict[str, Any]:
    return {"check": name, "expected": expected, "actual": actual, "passed": passed}


def _collect_verdicts(report: Dict[str, Any]) -> Dict[str, List[str]]:
    """Map "event:param" to every verdict it received across pages."""
    verdicts: Dict[str, List[str]] = {}
    for result in report["event_results"]:
        for param in result["parameters"]:
            key = f"{result['event_name']}:{param['parameter_name']}"
            verdicts.setdefault(key, []).append(param["verdict"])
    return verdicts


def grade_checks(checks: List[Dict[str, Any]], pass_ratio: float = DEFAULT_PASS_RATIO) -> str:
    """GREEN if every check passed, YELLOW at or above pass_ratio, else RED."""
    if not checks:
        return "RED"
    passed = sum(1 for c in checks if c["passed"])
    if passed == len(checks):
        return "GREEN"
    if passed / len(checks) >= pass_ratio:
        return "YELLOW"
    return "RED"


def score_case(case: Dict[str, Any], result: Dict[str, Any]) -> Dict[str, Any]:
    """Score one pipeline result against a case's expectations.

    Args:
        case: Parsed case YAML.
        result: Output of pipeline.run_validation() for the case's pages.

    Returns:
        Dict with case id, grade, pass counts and the individual checks.
    """
    expected = case.get("expected", {})
    report = result["report"]
    checks: List[Dict[str, Any]] = []

    if "overall_accuracy" in expected:
        want = expected["overall_accuracy"]
        got = report["overall_accuracy"]
        checks.append(_check(
            "overall_accuracy", want, round(got, 4),
            abs(got - want) <= ACCURACY_TOLERANCE,
        ))

    # A verdict must hold for every page the event:param appeared on.
    observed = _collect_verdicts(report)
    for key, want in (expected.get("verdicts") or {}).items():
        got = observed.get(key, [])
        checks.append(_check(
            f"verdict {key}", want, got,
            bool(got) and all(v == want for v in got),
        ))

    if "suggestions" in expected:
        want_suggestions = set(expected["suggestions"] or [])
        got_suggestions = {
            f"{s['event_name']}:{s['parameter_name']}" for s in report["improvements"]
        }
        checks.append(_check(
            "suggestions", sorted(want_suggestions), sorted(got_suggestions),
            want_suggestions == got_suggestions,
        ))

    if "noise_events" in expected:
        got_noise = sorted({e for page in result["pages"] for e in page["noise_events"]})
        want_noise = sorted(expected["noise_events"] or [])
        checks.append(_check("noise_events", want_noise, got_noise, want_noise == got_noise))

    pass_ratio = case["case"].get("pass_ratio", DEFAULT_PASS_RATIO)
    passed = sum(1 for c in checks if c["passed"])

    return {
        "case_id": case["case"]["id"],
        "name": case["case"]["name"],
        "grade": grade_checks(checks, pass_ratio),
        "passed": passed,
        "total": len(checks),
        "checks": checks,
    }


def run_case(case: Dict[str, Any], config: Optional[ValidationConfig] = None) -> Dict[str, Any]:
    """Run the pipeline on a case's pages and score the outcome."""
    result = run_validation(case.get("pages") or [], config)
    return score_case(case, result)


# ──────────────────────────────────────────────────
# CLI Interface
# ──────────────────────────────────────────────────

def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Run golden-case evaluation of the prediction validation engine"
    )
    parser.add_argument(
        "--case", default=None,
        help="Specific case to evaluate (e.g., E1). Defaults to all."
    )
    parser.add_argument(
        "--list-cases", action="store_true",
        help="List all available eval cases and exit"
    )
    return parser.parse_args()


def main():
    """CLI entry point: load cases, run them, output results."""
    args = parse_args()

    cases = load_cases()

    if args.list_cases:
        for case in cases:
            meta = case["case"]
            print(f"  {meta['id']}: {meta['name']} ({meta.get('purpose', '')})")
        return

    if args.case:
        cases = [c for c in cases if c["case"]["id"] == args.case]
        if not cases:
            print(json.dumps({"error": f"No eval case found with id {args.case}"}))
            sys.exit(1)

    results = {c["case"]["id"]: run_case(c) for c in cases}
    print(json.dumps(results, indent=2, ensure_ascii=False))

    if any(r["grade"] == "RED" for r in results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
