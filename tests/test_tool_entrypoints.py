"""CLI entrypoint compatibility tests for the engine modules and eval runner."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parent.parent
EVAL_DIR = ROOT / "eval"


@pytest.mark.parametrize(
    "module_name",
    [
        "prediction_validation.verdict",
        "prediction_validation.significance",
        "prediction_validation.aggregate",
        "prediction_validation.pipeline",
    ],
)
def test_modules_support_help(module_name: str):
    """`python -m` execution should work for help invocation."""
    result = subprocess.run(
        [sys.executable, "-m", module_name, "--help"],
        capture_output=True,
        text=True,
        timeout=30,
        cwd=ROOT,
    )

    combined = f"{result.stdout}\n{result.stderr}".lower()
    assert result.returncode == 0, combined
    assert "usage" in combined
    assert "--log-level" in combined


def test_eval_runner_help_lists_case_flag():
    """Eval CLI should advertise single-case selection."""
    script_path = EVAL_DIR / "run_eval.py"
    result = subprocess.run(
        [sys.executable, str(script_path), "--help"],
        capture_output=True,
        text=True,
        timeout=30,
    )
    combined = f"{result.stdout}\n{result.stderr}"
    assert result.returncode == 0, combined
    assert "--case" in combined
    assert "--list-cases" in combined
