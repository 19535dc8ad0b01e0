"""Tests for the cross-run learnings store."""

import copy
import json

import pytest

from prediction_validation.aggregate import aggregate_results
from prediction_validation.learnings import (
    CONFIRMATION_THRESHOLD,
    MAX_STORED_EXAMPLES,
    confirmed_updates,
    empty_learnings,
    load_learnings,
    merge_learnings,
    save_learnings,
)


@pytest.fixture
def report(brand_mismatch_results):
    return aggregate_results(brand_mismatch_results)


class TestMergeLearnings:

    def test_first_run(self, report):
        learnings = merge_learnings(empty_learnings(), report, run_date="2026-10-01T00:00:00+00:00")
        assert learnings["history"] == [{
            "date": "2026-10-01T00:00:00+00:00",
            "accuracy": pytest.approx(0.4),
            "events": 2,
            "suggestions": 1,
        }]
        update = learnings["updates"][0]
        assert update["event_name"] == "add_to_cart"
        assert update["parameter_name"] == "item_brand"
        assert update["occurrences"] == 1
        assert update["first_seen"] == update["last_seen"] == "2026-10-01T00:00:00+00:00"
        assert len(update["examples"]) == 2

    def test_repeat_run_increments(self, report):
        learnings = merge_learnings(empty_learnings(), report, run_date="2026-10-01")
        learnings = merge_learnings(learnings, report, run_date="2026-10-02")
        assert len(learnings["updates"]) == 1
        update = learnings["updates"][0]
        assert update["occurrences"] == 2
        assert update["first_seen"] == "2026-10-01"
        assert update["last_seen"] == "2026-10-02"
        assert update["latest_suggestion"] == report["improvements"][0]["suggested_rule"]
        assert len(learnings["history"]) == 2

    def test_examples_capped(self, report):
        learnings = empty_learnings()
        for day in range(MAX_STORED_EXAMPLES):
            learnings = merge_learnings(learnings, report, run_date=f"2026-10-{day + 1:02d}")
        assert len(learnings["updates"][0]["examples"]) == MAX_STORED_EXAMPLES

    def test_input_not_mutated(self, report):
        original = empty_learnings()
        snapshot = copy.deepcopy(original)
        merge_learnings(original, report)
        assert original == snapshot

    def test_report_without_suggestions(self):
        learnings = merge_learnings(empty_learnings(), aggregate_results([]))
        assert learnings["updates"] == []
        assert learnings["history"][0]["suggestions"] == 0

    def test_default_date_is_iso(self, report):
        learnings = merge_learnings(empty_learnings(), report)
        assert "T" in learnings["history"][0]["date"]

    def test_tolerates_partial_document(self, report):
        learnings = merge_learnings({}, report, run_date="2026-10-01")
        assert len(learnings["updates"]) == 1


class TestConfirmedUpdates:

    def test_threshold(self, report):
        learnings = empty_learnings()
        for day in range(1, CONFIRMATION_THRESHOLD):
            learnings = merge_learnings(learnings, report, run_date=f"2026-10-0{day}")
        assert confirmed_updates(learnings) == []

        learnings = merge_learnings(learnings, report, run_date="2026-10-09")
        confirmed = confirmed_updates(learnings)
        assert [u["parameter_name"] for u in confirmed] == ["item_brand"]

    def test_custom_threshold(self, report):
        learnings = merge_learnings(empty_learnings(), report)
        assert len(confirmed_updates(learnings, min_occurrences=1)) == 1


class TestPersistence:

    def test_absent_file_is_empty(self, tmp_path):
        assert load_learnings(tmp_path / "learnings.json") == {"updates": [], "history": []}

    def test_save_creates_directories(self, tmp_path, report):
        path = tmp_path / "output" / "validation" / "learnings.json"
        learnings = merge_learnings(empty_learnings(), report, run_date="2026-10-01")
        save_learnings(path, learnings)
        assert path.exists()
        assert load_learnings(path) == json.loads(json.dumps(learnings))

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "learnings.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Malformed"):
            load_learnings(path)

    def test_non_object(self, tmp_path):
        path = tmp_path / "learnings.json"
        path.write_text("[]")
        with pytest.raises(ValueError, match="JSON object"):
            load_learnings(path)

    def test_wrong_section_type(self, tmp_path):
        path = tmp_path / "learnings.json"
        path.write_text(json.dumps({"updates": {}, "history": []}))
        with pytest.raises(ValueError, match="updates"):
            load_learnings(path)

    def test_missing_sections_filled(self, tmp_path):
        path = tmp_path / "learnings.json"
        path.write_text(json.dumps({"history": []}))
        assert load_learnings(path)["updates"] == []
