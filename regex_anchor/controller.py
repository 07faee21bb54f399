"""
Change-triggered rebuild control.

Host events are mapped to triggers, and triggers to one of two actions:
a full index rebuild (followed by a decoration refresh of open documents) or
a read-only resolution pass over one document. The mapping is plain data so
it can be tested without an editor or file watcher.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from .links.indexer import LinkIndexer
from .links.resolver import LinkResolver
from .models import Document, DocumentDecorations
from .rules.schema import Rule

logger = logging.getLogger(__name__)


class Trigger(str, Enum):
    CONFIG_CHANGED = "config_changed"
    REFRESH_COMMAND = "refresh_command"
    DESTINATION_SAVED = "destination_saved"
    OTHER_SAVED = "other_saved"
    DOCUMENT_CHANGED = "document_changed"
    DOCUMENT_OPENED = "document_opened"


class Action(str, Enum):
    REBUILD = "rebuild"
    REFRESH = "refresh"
    NONE = "none"


class State(str, Enum):
    IDLE = "idle"
    REBUILDING = "rebuilding"


TRIGGER_ACTIONS: dict[Trigger, Action] = {
    Trigger.CONFIG_CHANGED: Action.REBUILD,
    Trigger.REFRESH_COMMAND: Action.REBUILD,
    Trigger.DESTINATION_SAVED: Action.REBUILD,
    Trigger.OTHER_SAVED: Action.NONE,
    Trigger.DOCUMENT_CHANGED: Action.REFRESH,
    Trigger.DOCUMENT_OPENED: Action.REFRESH,
}

PublishFn = Callable[[Document, DocumentDecorations], None]
OpenDocumentsFn = Callable[[], Iterable[Document]]


class RebuildController:
    """Decides when the index is rebuilt and when a document's decorations are recomputed."""

    def __init__(
        self,
        indexer: LinkIndexer,
        resolver: LinkResolver,
        *,
        publish: PublishFn | None = None,
        open_documents: OpenDocumentsFn | None = None,
    ):
        self.indexer = indexer
        self.resolver = resolver
        self.publish = publish
        self.open_documents = open_documents
        self.rules: list[Rule] = []

    @property
    def state(self) -> State:
        return State.REBUILDING if self.indexer.is_rebuilding else State.IDLE

    def set_rules(self, rules: Iterable[Rule]) -> None:
        """Replace the rule set wholesale."""
        self.rules = list(rules)
        self.resolver.set_rules(self.rules)

    def classify_save(self, path: Path) -> Trigger:
        if self.indexer.is_destination_file(path, self.rules):
            return Trigger.DESTINATION_SAVED
        return Trigger.OTHER_SAVED

    async def handle(self, trigger: Trigger, document: Document | None = None) -> Action:
        """Run the action the decision table assigns to trigger."""
        action = TRIGGER_ACTIONS[trigger]
        logger.debug("Trigger %s -> %s", trigger.value, action.value)

        if action is Action.REBUILD:
            await self.rebuild()
            self.refresh_open_documents(extra=document)
        elif action is Action.REFRESH and document is not None:
            self.refresh(document)

        return action

    async def on_config_changed(self, rules: Iterable[Rule]) -> Action:
        self.set_rules(rules)
        return await self.handle(Trigger.CONFIG_CHANGED)

    async def on_saved(self, path: Path, document: Document | None = None) -> Action:
        return await self.handle(self.classify_save(path), document)

    async def rebuild(self) -> None:
        logger.info("Rebuilding link index...")
        await self.indexer.rebuild(self.rules)

    def refresh(self, document: Document) -> DocumentDecorations:
        """Recompute one document's decorations against the current index."""
        decorations = self.resolver.decorate(document)
        if self.publish is not None:
            self.publish(document, decorations)
        return decorations

    def refresh_open_documents(self, extra: Document | None = None) -> None:
        documents = list(self.open_documents()) if self.open_documents is not None else []
        if extra is not None and all(doc.path != extra.path for doc in documents):
            documents.append(extra)
        for document in documents:
            self.refresh(document)
