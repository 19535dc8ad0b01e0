#!/usr/bin/env python3
"""Validation rule tables: parameter classes, group aliases and path patterns.

The normalizer, verdict classifier and significance tools all dispatch on
lookup data that differs per site: which parameter names carry prices, which
labels are synonyms for "product detail", which events the analytics platform
collects on its own. That data lives in prediction_validation/knowledge/validation_rules.yaml
and is loaded here into an immutable ValidationConfig, which every tool
accepts as an optional `config` argument.

Usage (import):
    from prediction_validation.config import default_config, load_validation_config
    config = load_validation_config("site_rules.yaml")
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import yaml


# Resolve relative to this file, not cwd. Shipped as package data.
KNOWLEDGE_DIR = Path(__file__).resolve().parent / "knowledge"
DEFAULT_RULES_PATH = KNOWLEDGE_DIR / "validation_rules.yaml"

# Parameter classes every rules file must define.
REQUIRED_CLASSES = (
    "locale",
    "numeric",
    "identifier",
    "mode",
    "group_label",
    "quantity",
    "derivable",
)

_GROUP_KEY_STRIP = re.compile(r"[_\s-]")


def group_key(value: str) -> str:
    """Alias-table key for a group label: separators removed, uppercased."""
    return _GROUP_KEY_STRIP.sub("", value).upper()


@dataclass(frozen=True)
class ParameterClass:
    """Name matcher for one class of parameters.

    A name belongs to the class when it is listed exactly, or starts with a
    prefix, ends with a suffix, or contains a fragment.
    """

    names: frozenset = frozenset()
    prefixes: Tuple[str, ...] = ()
    suffixes: Tuple[str, ...] = ()
    contains: Tuple[str, ...] = ()

    def matches(self, parameter_name: str) -> bool:
        if parameter_name in self.names:
            return True
        if self.prefixes and parameter_name.startswith(self.prefixes):
            return True
        if self.suffixes and parameter_name.endswith(self.suffixes):
            return True
        return any(fragment in parameter_name for fragment in self.contains)


@dataclass(frozen=True)
class PathGroupPattern:
    """Path -> group rule: every substring in `contains` must be present."""

    contains: Tuple[str, ...]
    group: str


@dataclass(frozen=True)
class ValidationConfig:
    classes: Mapping[str, ParameterClass]
    group_aliases: Mapping[str, str]
    zero_values: frozenset = frozenset({"0", "0.0", "0.00"})
    group_label_parameter: str = "content_group"
    others_sentinel: str = "OTHERS"
    default_group_label: str = "UNCLASSIFIED"
    auto_collected_events: frozenset = frozenset()
    root_paths: frozenset = frozenset()
    root_group: str = "MAIN"
    path_patterns: Tuple[PathGroupPattern, ...] = ()
    source: Optional[str] = field(default=None, compare=False)

    def is_derivable(self, parameter_name: str) -> bool:
        """True if the parameter can be predicted from URL/page context alone."""
        return self.classes["derivable"].matches(parameter_name)

    def is_quantity(self, parameter_name: str) -> bool:
        return self.classes["quantity"].matches(parameter_name)


# ──────────────────────────────────────────────────
# Parsing helpers
# ──────────────────────────────────────────────────

def _as_tuple(values: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    if not values:
        return ()
    return tuple(str(v) for v in values)


def _parse_parameter_class(name: str, raw: Any) -> ParameterClass:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"parameter_classes.{name} must be a mapping, got {type(raw).__name__}")
    return ParameterClass(
        names=frozenset(_as_tuple(raw.get("names"))),
        prefixes=_as_tuple(raw.get("prefixes")),
        suffixes=_as_tuple(raw.get("suffixes")),
        contains=_as_tuple(raw.get("contains")),
    )


def _parse_group_aliases(raw: Any) -> Dict[str, str]:
    """Build the alias table and check it is a fixed point.

    Normalizing an alias target must return the target itself, otherwise
    group-label normalization would not be idempotent (e.g. a target
    "PRODUCT_DETAIL" while "PRODUCTDETAIL" maps somewhere else).
    """
    if not isinstance(raw, dict):
        raise ValueError("group_aliases must be a mapping of label -> canonical label")

    aliases = {group_key(str(k)): str(v).strip().upper() for k, v in raw.items()}

    for target in set(aliases.values()):
        resolved = aliases.get(group_key(target), target)
        if resolved != target:
            raise ValueError(
                f"group_aliases target {target!r} is not canonical: "
                f"it resolves to {resolved!r}"
            )
    return aliases


def _parse_path_groups(raw: Any) -> Tuple[frozenset, str, Tuple[PathGroupPattern, ...]]:
    if raw is None:
        return frozenset(), "MAIN", ()
    if not isinstance(raw, dict):
        raise ValueError("path_groups must be a mapping")

    patterns = []
    for entry in raw.get("patterns") or []:
        if "contains" not in entry or "group" not in entry:
            raise ValueError(f"path_groups pattern needs 'contains' and 'group': {entry!r}")
        patterns.append(
            PathGroupPattern(
                contains=tuple(s.lower() for s in _as_tuple(entry["contains"])),
                group=str(entry["group"]),
            )
        )

    root_paths = frozenset(p.lower() for p in _as_tuple(raw.get("root_paths")))
    return root_paths, str(raw.get("root_group", "MAIN")), tuple(patterns)


def build_config(definitions: Dict[str, Any], source: Optional[str] = None) -> ValidationConfig:
    """Build a ValidationConfig from an already-parsed rules document.

    Raises:
        ValueError: If a required section is missing or malformed.
    """
    if not isinstance(definitions, dict):
        raise ValueError("validation rules must be a mapping at the top level")

    raw_classes = definitions.get("parameter_classes")
    if not isinstance(raw_classes, dict):
        raise ValueError("validation rules are missing 'parameter_classes'")

    missing = [name for name in REQUIRED_CLASSES if name not in raw_classes]
    if missing:
        raise ValueError(f"parameter_classes missing required classes: {', '.join(missing)}")

    classes = {
        name: _parse_parameter_class(name, raw)
        for name, raw in raw_classes.items()
    }

    root_paths, root_group, path_patterns = _parse_path_groups(definitions.get("path_groups"))

    group_label_parameter = str(definitions.get("group_label_parameter", "content_group"))
    if not classes["group_label"].matches(group_label_parameter):
        raise ValueError(
            f"group_label_parameter {group_label_parameter!r} is not in the group_label class"
        )

    return ValidationConfig(
        classes=MappingProxyType(classes),
        group_aliases=MappingProxyType(_parse_group_aliases(definitions.get("group_aliases", {}))),
        zero_values=frozenset(_as_tuple(definitions.get("zero_values", ["0", "0.0", "0.00"]))),
        group_label_parameter=group_label_parameter,
        others_sentinel=str(definitions.get("others_sentinel", "OTHERS")).upper(),
        default_group_label=str(definitions.get("default_group_label", "UNCLASSIFIED")),
        auto_collected_events=frozenset(_as_tuple(definitions.get("auto_collected_events"))),
        root_paths=root_paths,
        root_group=root_group,
        path_patterns=path_patterns,
        source=source,
    )


def load_validation_config(path: Optional[Union[str, Path]] = None) -> ValidationConfig:
    """Load validation rules from YAML.

    Args:
        path: Rules file. Defaults to the bundled knowledge/validation_rules.yaml.

    Raises:
        FileNotFoundError: If the rules file doesn't exist.
        ValueError: If the file is not valid YAML or a section is malformed.
    """
    yaml_path = Path(path) if path is not None else DEFAULT_RULES_PATH
    if not yaml_path.exists():
        raise FileNotFoundError(f"Validation rules not found: {yaml_path}")

    with open(yaml_path, "r") as f:
        try:
            definitions = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {yaml_path}: {exc}") from exc

    return build_config(definitions, source=str(yaml_path))


@lru_cache(maxsize=1)
def default_config() -> ValidationConfig:
    """Bundled rules, loaded once per process."""
    return load_validation_config()


def infer_group_from_path(page_path: str, config: Optional[ValidationConfig] = None) -> Optional[str]:
    """Infer a page's group label from its URL path.

    Returns None when no pattern matches.
    """
    if config is None:
        config = default_config()
    if not page_path:
        return None

    path = page_path.lower()
    if path in config.root_paths:
        return config.root_group

    for pattern in config.path_patterns:
        if all(fragment in path for fragment in pattern.contains):
            return pattern.group
    return None
