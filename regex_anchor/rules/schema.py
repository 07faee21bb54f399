from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PreviewConfig:
    lines_before: int = 2
    lines_after: int = 2
    hover: bool = True
    editor: str | None = None


DEFAULT_PREVIEW = PreviewConfig()


@dataclass(frozen=True)
class SourceDescriptor:
    includes: str
    patterns: str


@dataclass(frozen=True)
class DestinationDescriptor:
    includes: str
    patterns: str
    preview: PreviewConfig | None = None


@dataclass(frozen=True)
class Rule:
    sources: tuple[SourceDescriptor, ...] = field(default_factory=tuple)
    destinations: tuple[DestinationDescriptor, ...] = field(default_factory=tuple)

    @property
    def is_active(self) -> bool:
        return bool(self.sources) and bool(self.destinations)
