"""Regex compilation and key extraction shared by indexing and resolution."""

from __future__ import annotations

import logging
import re
from functools import lru_cache

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile(pattern: str, flags: int) -> re.Pattern[str]:
    return re.compile(pattern, flags)


def compile_pattern(pattern: str, flags: int = 0) -> re.Pattern[str] | None:
    """Compile a user-supplied regex, logging and returning None if it is invalid."""
    try:
        return _compile(pattern, flags)
    except re.error as e:
        logger.warning("Invalid regex pattern %r: %s", pattern, e)
        return None


def extract_key(match: re.Match[str]) -> str:
    """Capture group 1 if it captured something, else the whole match; trimmed."""
    value = match.group(1) if match.re.groups else None
    if not value:
        value = match.group(0)
    return value.strip()
