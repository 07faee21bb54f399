"""
Destination index: key -> locations of destination-pattern matches.

The index is rebuilt wholesale. A rebuild clears synchronously, scans every
destination descriptor concurrently, then inserts the whole generation in one
synchronous step, so readers see either an empty index or exactly one
generation's entries.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Iterable

from ..models import Location, Range
from ..rules.schema import DestinationDescriptor, Rule
from .patterns import compile_pattern, extract_key
from .scanner import FileScanner, read_lines

logger = logging.getLogger(__name__)


def scan_lines(path: Path, lines: Iterable[str], pattern: re.Pattern[str]) -> list[tuple[str, Location]]:
    """Key each line by its first match; the location spans the whole line."""
    entries: list[tuple[str, Location]] = []
    for line_no, line in enumerate(lines):
        match = pattern.search(line)
        if match is None:
            continue
        key = extract_key(match)
        if not key:
            continue
        entries.append((key, Location(path=path, range=Range.on_line(line_no, 0, len(line)))))
    return entries


class LinkIndexer:
    """Owns the key -> locations map for one workspace."""

    def __init__(self, scanner: FileScanner):
        self.scanner = scanner
        # dict-as-ordered-set: discovery order without duplicate locations
        self._index: dict[str, dict[Location, None]] = {}
        self._generation = 0
        self._in_flight = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_rebuilding(self) -> bool:
        return self._in_flight > 0

    def clear(self) -> None:
        self._index.clear()

    def add(self, key: str, location: Location) -> None:
        if not key:
            return
        self._index.setdefault(key, {})[location] = None

    def has_destination(self, key: str) -> bool:
        return bool(self._index.get(key))

    def get_destinations(self, key: str) -> list[Location]:
        return list(self._index.get(key, ()))

    def keys(self) -> list[str]:
        return list(self._index)

    def snapshot(self) -> dict[str, frozenset[Location]]:
        """Order-independent copy of the index contents."""
        return {key: frozenset(locations) for key, locations in self._index.items()}

    def __len__(self) -> int:
        return len(self._index)

    def is_destination_file(self, path: Path, rules: Iterable[Rule]) -> bool:
        """True if path matches the `includes` glob of any destination descriptor."""
        return any(
            self.scanner.is_file_match_glob(path, dest.includes)
            for rule in rules
            for dest in rule.destinations
        )

    async def rebuild(self, rules: Iterable[Rule]) -> None:
        """Clear the index and repopulate it from every active rule's destinations."""
        self._generation += 1
        generation = self._generation
        self.clear()

        if not self.scanner.roots:
            logger.info("No workspace roots; link index left empty")
            return

        descriptors = [
            dest
            for rule in rules
            if rule.is_active
            for dest in rule.destinations
            if dest.includes and dest.patterns
        ]

        self._in_flight += 1
        try:
            batches = await asyncio.gather(*(self._scan_destination(d) for d in descriptors))
        finally:
            self._in_flight -= 1

        if generation != self._generation:
            logger.debug("Discarding link index generation %d (superseded by %d)", generation, self._generation)
            return

        for batch in batches:
            for key, location in batch:
                self.add(key, location)

        logger.info(
            "Link index rebuilt: %d keys from %d destination descriptors",
            len(self._index),
            len(descriptors),
        )

    async def _scan_destination(self, descriptor: DestinationDescriptor) -> list[tuple[str, Location]]:
        pattern = compile_pattern(descriptor.patterns)
        if pattern is None:
            return []

        try:
            files = await self.scanner.find_files_async(descriptor.includes)
        except (OSError, ValueError) as e:
            logger.warning("Error finding files for pattern %s: %s", descriptor.includes, e)
            return []

        logger.debug("Found %d destination files matching %s", len(files), descriptor.includes)

        contents = await asyncio.gather(*(self._read(path) for path in files))

        entries: list[tuple[str, Location]] = []
        for path, lines in zip(files, contents):
            if lines is not None:
                entries.extend(scan_lines(path, lines, pattern))
        return entries

    @staticmethod
    async def _read(path: Path) -> list[str] | None:
        try:
            return await asyncio.to_thread(read_lines, path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Error processing file %s: %s", path, e)
            return None
