from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from .schema import DestinationDescriptor, PreviewConfig, Rule, SourceDescriptor

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "regexAnchor"
CONFIG_FILENAME = ".regex-anchor.toml"
PYPROJECT_TABLE = "regex-anchor"


class ConfigError(ValueError):
    """A configuration file exists but cannot be read as TOML."""


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _coerce_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _coerce_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _coerce_count(value: Any, default: int) -> int:
    # bool is an int subclass; "true" is not a line count.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return default
    return value


def normalize_preview(raw: Any) -> PreviewConfig | None:
    if not isinstance(raw, dict):
        return None

    hover = raw.get("hover", True)
    editor = raw.get("editor")

    return PreviewConfig(
        lines_before=_coerce_count(raw.get("linesBefore"), 2),
        lines_after=_coerce_count(raw.get("linesAfter"), 2),
        hover=hover if isinstance(hover, bool) else True,
        editor=editor if isinstance(editor, str) and editor else None,
    )


def normalize_rules(raw: Any) -> list[Rule]:
    """
    Normalize raw `rules` settings into typed rules.

    Descriptors without `includes` or `patterns` are dropped, and so are rules
    left without any source or destination. Partial configuration is a normal
    editing state, so nothing here raises.
    """
    rules: list[Rule] = []
    for raw_rule in _coerce_list(raw):
        if not isinstance(raw_rule, dict):
            continue

        sources: list[SourceDescriptor] = []
        for item in _coerce_list(raw_rule.get("from")):
            item = _coerce_dict(item)
            includes = _coerce_str(item.get("includes"))
            patterns = item.get("patterns")
            if not includes or not isinstance(patterns, str) or not patterns:
                continue
            sources.append(SourceDescriptor(includes=includes, patterns=patterns))

        destinations: list[DestinationDescriptor] = []
        for item in _coerce_list(raw_rule.get("to")):
            item = _coerce_dict(item)
            includes = _coerce_str(item.get("includes"))
            patterns = item.get("patterns")
            if not includes or not isinstance(patterns, str) or not patterns:
                continue
            destinations.append(
                DestinationDescriptor(
                    includes=includes,
                    patterns=patterns,
                    preview=normalize_preview(item.get("preview")),
                )
            )

        rule = Rule(sources=tuple(sources), destinations=tuple(destinations))
        if not rule.is_active:
            logger.debug("Skipping rule without sources or destinations: %r", raw_rule)
            continue
        rules.append(rule)

    return rules


def rules_from_settings(settings: Any) -> list[Rule] | None:
    """
    Extract rules from an LSP settings payload.

    Returns None when the payload does not carry the `regexAnchor` section,
    so callers can tell "not our namespace" apart from "no rules".
    """
    settings = _coerce_dict(settings)
    if SETTINGS_SECTION in settings:
        return normalize_rules(_coerce_dict(settings[SETTINGS_SECTION]).get("rules"))
    if "rules" in settings:
        return normalize_rules(settings["rules"])
    return None


def load_rules_file(path: Path) -> list[Rule]:
    """
    Load rules from TOML.

    `pyproject.toml` is read from its `[tool.regex-anchor]` table, any other
    file from its top level.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if path.name == "pyproject.toml":
        data = _coerce_dict(_coerce_dict(data.get("tool")).get(PYPROJECT_TABLE))

    return normalize_rules(data.get("rules"))


def find_config_file(root: Path) -> Path | None:
    """Find the workspace-owned config file, if present."""
    candidate = root / CONFIG_FILENAME
    if candidate.is_file():
        return candidate

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            return None
        if PYPROJECT_TABLE in _coerce_dict(data.get("tool")):
            return pyproject
    return None


def load_workspace_rules(roots: list[Path]) -> list[Rule]:
    """Load and concatenate the rules of every root that has a config file."""
    rules: list[Rule] = []
    for root in roots:
        config_path = find_config_file(root)
        if config_path is None:
            continue
        rules.extend(load_rules_file(config_path))
    return rules
