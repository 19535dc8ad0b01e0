#!/usr/bin/env python3
"""Value normalization for predicted and collected analytics parameters.

Predicted values come from URL heuristics or a vision model; collected values
come from the analytics platform or the page's data layer. The same fact shows
up as "ko" vs "ko-KR", "135,000" vs "135000", "PDP" vs "PRODUCT_DETAIL".
Comparing raw strings would flag all of these as mismatches, so both sides are
canonicalized first.

Dispatch is an ordered list of NormalizationRule(name, matches, apply); the
first rule whose predicate accepts the parameter name wins. The rule name
doubles as the parameter's class ("locale", "numeric", ...), which the verdict
classifier and the rule-suggestion engine reuse. Callers add classes by
passing extra rules, which are checked before the built-in ones.

Usage (import):
    from prediction_validation.normalizer import normalize_value
    normalize_value("site_language", "ko-KR")   # -> "ko"
    normalize_value("price", "₩135,000")        # -> "135000"
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, NamedTuple, Optional, Sequence, Tuple

from prediction_validation.config import ValidationConfig, default_config, group_key

logger = logging.getLogger(__name__)

# Values that mean "nothing was collected", compared after strip + lower.
NULL_LITERALS = frozenset({"", "null"})

DEFAULT_CLASS = "default"

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


class NormalizationRule(NamedTuple):
    name: str
    matches: Callable[[str], bool]
    apply: Callable[[str], Optional[str]]


# ──────────────────────────────────────────────────
# Per-class transforms
# ──────────────────────────────────────────────────

def normalize_locale(value: str) -> str:
    """ko-KR -> ko"""
    return value.strip().split("-")[0].lower()


def normalize_numeric(value: str) -> Optional[str]:
    """Keep digits, '.' and '-' only ("₩135,000" -> "135000").

    A value with no digits at all ("abc-", ".") carries no number: None.
    """
    stripped = _NON_NUMERIC.sub("", value)
    if not any(ch.isdigit() for ch in stripped):
        return None
    return stripped


def normalize_identifier(value: str) -> str:
    return value.strip().lower()


def normalize_mode(value: str) -> str:
    return value.strip().upper()


def normalize_group_label(value: str, config: ValidationConfig) -> str:
    """Collapse synonymous group labels through the alias table.

    Unknown labels are returned trimmed and uppercased.
    """
    return config.group_aliases.get(group_key(value), value.strip().upper())


def normalize_default(value: str) -> str:
    return value.strip().lower()


def build_rules(
    config: Optional[ValidationConfig] = None,
    extra_rules: Iterable[NormalizationRule] = (),
) -> Tuple[NormalizationRule, ...]:
    """Assemble the ordered rule list for a configuration.

    Extra rules come first so a deployment can claim parameter names before
    the built-in classes see them. The default rule is always last.
    """
    if config is None:
        config = default_config()

    builtin = (
        NormalizationRule("locale", config.classes["locale"].matches, normalize_locale),
        NormalizationRule("numeric", config.classes["numeric"].matches, normalize_numeric),
        NormalizationRule("identifier", config.classes["identifier"].matches, normalize_identifier),
        NormalizationRule("mode", config.classes["mode"].matches, normalize_mode),
        NormalizationRule(
            "group_label",
            config.classes["group_label"].matches,
            lambda value: normalize_group_label(value, config),
        ),
    )
    fallback = NormalizationRule(DEFAULT_CLASS, lambda name: True, normalize_default)
    return tuple(extra_rules) + builtin + (fallback,)


def _select_rule(parameter_name: str, rules: Sequence[NormalizationRule]) -> NormalizationRule:
    for rule in rules:
        if rule.matches(parameter_name):
            return rule
    # build_rules() always ends with a catch-all; hand-built lists might not.
    logger.debug("No rule matched %r; using default normalization", parameter_name)
    return NormalizationRule(DEFAULT_CLASS, lambda name: True, normalize_default)


def parameter_class(
    parameter_name: str,
    config: Optional[ValidationConfig] = None,
    rules: Optional[Sequence[NormalizationRule]] = None,
) -> str:
    """Name of the rule that normalizes this parameter ("locale", "numeric", ...)."""
    if rules is None:
        rules = build_rules(config)
    return _select_rule(parameter_name, rules).name


def is_null_value(value: Any) -> bool:
    """True for None, "", whitespace and the literal "null"."""
    if value is None:
        return True
    return str(value).strip().lower() in NULL_LITERALS


def normalize_value(
    parameter_name: str,
    raw_value: Any,
    config: Optional[ValidationConfig] = None,
    rules: Optional[Sequence[NormalizationRule]] = None,
) -> Optional[str]:
    """Canonicalize a raw value for comparison.

    Pure function of (parameter_name, raw_value): the result never depends
    on other parameters. Applying it to its own output returns the same value.

    Args:
        parameter_name: Parameter name (open vocabulary).
        raw_value: str, int, float or None.
        config: Rule tables. Defaults to the bundled validation_rules.yaml.
        rules: Pre-built rule list (see build_rules); built from config if omitted.

    Returns:
        Canonical string, or None when the value is empty/unset.
    """
    if config is None:
        config = default_config()
    if is_null_value(raw_value):
        return None

    if rules is None:
        rules = build_rules(config)
    rule = _select_rule(parameter_name, rules)

    normalized = rule.apply(str(raw_value))
    if not normalized:
        return None

    # Zero on a price/count field is an unset default, not a real zero.
    if config.is_quantity(parameter_name) and normalized in config.zero_values:
        return None

    # A transform can re-create a null literal ("NULL" under the default rule).
    if normalized.strip().lower() in NULL_LITERALS:
        return None

    return normalized
