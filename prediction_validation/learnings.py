"""Cross-run learnings: remember rule suggestions that keep coming back.

A single validation run only sees one slice of traffic. When the same
(event, parameter) mismatch suggestion shows up in several runs, it is
probably a real gap in the normalization rules rather than a one-off.

The learnings document is plain JSON owned by the caller:

    {
      "updates": [
        {"event_name", "parameter_name", "suggested_rule", "latest_suggestion",
         "occurrences", "first_seen", "last_seen", "examples": [...]}
      ],
      "history": [{"date", "accuracy", "events", "suggestions"}]
    }

The engine never reads or writes it on its own; pipeline.py does so only
when asked (--learnings).
"""

from __future__ import annotations

import copy
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# A suggestion seen in this many runs is considered confirmed.
CONFIRMATION_THRESHOLD = 3

# Examples kept per update entry, across all runs.
MAX_STORED_EXAMPLES = 10


def empty_learnings() -> Dict[str, List[Dict[str, Any]]]:
    return {"updates": [], "history": []}


def _update_key(entry: Dict[str, Any]):
    return entry.get("event_name"), entry.get("parameter_name")


def merge_learnings(
    learnings: Dict[str, Any],
    report: Dict[str, Any],
    run_date: Optional[str] = None,
) -> Dict[str, Any]:
    """Fold one run's report into the learnings document.

    Args:
        learnings: Existing document (see module docstring). Not modified.
        report: ValidationReport from aggregate.aggregate_results().
        run_date: ISO timestamp for this run; defaults to now (UTC).

    Returns:
        A new learnings document with one more history entry and the
        report's suggestions merged into updates.
    """
    if run_date is None:
        run_date = datetime.now(timezone.utc).isoformat()

    merged = copy.deepcopy(learnings)
    merged.setdefault("updates", [])
    merged.setdefault("history", [])

    suggestions = report.get("improvements", [])
    merged["history"].append({
        "date": run_date,
        "accuracy": report.get("overall_accuracy", 0.0),
        "events": report.get("total_events", 0),
        "suggestions": len(suggestions),
    })

    index = {_update_key(u): u for u in merged["updates"]}
    for suggestion in suggestions:
        key = _update_key(suggestion)
        existing = index.get(key)
        if existing is not None:
            existing["occurrences"] = existing.get("occurrences", 1) + 1
            existing["latest_suggestion"] = suggestion["suggested_rule"]
            existing["last_seen"] = run_date
            examples = existing.setdefault("examples", [])
            room = MAX_STORED_EXAMPLES - len(examples)
            if room > 0:
                examples.extend(copy.deepcopy(suggestion.get("examples", []))[:room])
            continue

        entry = {
            "event_name": suggestion["event_name"],
            "parameter_name": suggestion["parameter_name"],
            "suggested_rule": suggestion["suggested_rule"],
            "latest_suggestion": suggestion["suggested_rule"],
            "occurrences": 1,
            "first_seen": run_date,
            "last_seen": run_date,
            "examples": copy.deepcopy(suggestion.get("examples", []))[:MAX_STORED_EXAMPLES],
        }
        merged["updates"].append(entry)
        index[key] = entry

    logger.info(
        "Learnings now hold %d runs and %d update suggestions",
        len(merged["history"]), len(merged["updates"]),
    )
    return merged


def confirmed_updates(
    learnings: Dict[str, Any],
    min_occurrences: int = CONFIRMATION_THRESHOLD,
) -> List[Dict[str, Any]]:
    """Update entries seen in at least `min_occurrences` runs."""
    return [u for u in learnings.get("updates", []) if u.get("occurrences", 0) >= min_occurrences]


def load_learnings(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a learnings file; an absent file is an empty document.

    Raises:
        ValueError: File exists but is not a learnings JSON object.
    """
    path = Path(path)
    if not path.exists():
        logger.debug("No learnings file at %s; starting fresh", path)
        return empty_learnings()

    with path.open() as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Malformed learnings file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Learnings file {path} must hold a JSON object")
    for section in ("updates", "history"):
        if not isinstance(data.setdefault(section, []), list):
            raise ValueError(f"Learnings file {path}: '{section}' must be a list")
    return data


def save_learnings(path: Union[str, Path], learnings: Dict[str, Any]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        json.dump(learnings, f, indent=2, ensure_ascii=False)
    logger.info("Saved learnings to %s", path)
    return path
