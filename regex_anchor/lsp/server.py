"""
LSP server implementation for regex-anchor.

Provides:
- Broken-link diagnostics on open, change and after every index rebuild
- Document links, go-to-definition and hover previews for resolved links
- Inlay hints for destinations whose preview defines an `editor` pattern
- The `regexAnchor.refresh` command
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from .. import __version__
from ..controller import RebuildController, Trigger
from ..links.indexer import LinkIndexer
from ..links.resolver import LinkResolver
from ..links.scanner import FileScanner, read_lines
from ..models import Document, DocumentDecorations, Position, split_lines
from ..rules import ConfigError, Rule, load_rules_file, load_workspace_rules, rules_from_settings
from ..rules.load import SETTINGS_SECTION
from .diagnostics import (
    RangeEncoder,
    broken_link_diagnostics,
    document_links,
    inlay_hints,
    to_lsp_location,
    to_lsp_range,
)
from .hover import get_hover_info

logger = logging.getLogger(__name__)

REFRESH_COMMAND = "regexAnchor.refresh"
REFRESHED_MESSAGE = "Link index has been refreshed"


class AnchorLanguageServer(LanguageServer):
    """Language server exposing the link index to an editor."""

    def __init__(self, config_path: Path | None = None):
        super().__init__(name="regex-anchor", version=__version__)
        self.config_path = config_path
        self.initialization_options: Any = None
        self.scanner = FileScanner()
        self.indexer = LinkIndexer(self.scanner)
        self.resolver = LinkResolver(self.indexer, reader=self.read_destination)
        self.controller = RebuildController(
            self.indexer,
            self.resolver,
            publish=self.publish_decorations,
            open_documents=self.open_documents,
        )

    def set_roots(self, roots: list[Path]) -> None:
        self.scanner.roots = [root.resolve() for root in roots]
        logger.info("Workspace roots: %s", ", ".join(str(r) for r in self.scanner.roots) or "(none)")

    def workspace_roots(self) -> list[Path]:
        folders = list(self.workspace.folders.values())
        if folders:
            return [uri_to_path(folder.uri) for folder in folders]
        if self.workspace.root_path:
            return [Path(self.workspace.root_path)]
        return []

    def fallback_rules(self) -> list[Rule]:
        """Rules from --config or the workspace config file."""
        try:
            if self.config_path is not None:
                return load_rules_file(self.config_path)
            return load_workspace_rules(self.scanner.roots)
        except ConfigError as e:
            logger.warning("Ignoring configuration file: %s", e)
            return []

    def to_document(self, uri: str) -> Document:
        text_document = self.workspace.get_text_document(uri)
        return Document(path=uri_to_path(uri).resolve(), text=text_document.source, uri=uri)

    def open_documents(self) -> list[Document]:
        return [
            self.to_document(uri)
            for uri in list(self.workspace.text_documents)
            if uri.startswith("file:")
        ]

    def read_destination(self, path: Path) -> list[str]:
        """Read destination lines from an open buffer if there is one, else from disk."""
        for document in self.open_documents():
            if document.path == path:
                return split_lines(document.text)
        return read_lines(path)

    # Engine columns are code points; the client counts in its negotiated
    # position encoding.

    def from_client_position(self, document: Document, position: lsp.Position) -> Position:
        codec = self.workspace.position_codec
        converted = codec.position_from_client_units(document.lines, position)
        return Position(line=converted.line, character=converted.character)

    def range_encoder(self, lines: list[str]) -> RangeEncoder:
        codec = self.workspace.position_codec
        return lambda span: codec.range_to_client_units(lines, span)

    def destination_encoder(self, path: Path) -> RangeEncoder:
        try:
            lines = self.read_destination(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read destination %s: %s", path, e)
            return lambda span: span
        return self.range_encoder(lines)

    def publish_decorations(self, document: Document, decorations: DocumentDecorations) -> None:
        self.text_document_publish_diagnostics(
            lsp.PublishDiagnosticsParams(
                uri=document.document_uri,
                diagnostics=broken_link_diagnostics(decorations, self.range_encoder(document.lines)),
            )
        )

    def request_inlay_hint_refresh(self) -> None:
        capabilities = self.client_capabilities.workspace
        inlay = capabilities.inlay_hint if capabilities else None
        if inlay and inlay.refresh_support:
            self.workspace_inlay_hint_refresh(None)

    async def pull_settings_rules(self) -> list[Rule] | None:
        """Ask the client for the `regexAnchor` section, if it supports workspace/configuration."""
        capabilities = self.client_capabilities.workspace
        if not (capabilities and capabilities.configuration):
            return None
        try:
            result = await self.workspace_configuration_async(
                lsp.ConfigurationParams(items=[lsp.ConfigurationItem(section=SETTINGS_SECTION)])
            )
        except Exception as e:
            logger.warning("workspace/configuration request failed: %s", e)
            return None
        if not result or not isinstance(result[0], dict):
            return None
        return rules_from_settings({SETTINGS_SECTION: result[0]})

    async def reload(self, settings: Any = None) -> None:
        """Resolve rules (pushed settings, pulled settings, then config file) and rebuild."""
        rules = rules_from_settings(settings)
        if rules is None:
            rules = await self.pull_settings_rules()
        if not rules:
            rules = self.fallback_rules()
        await self.controller.on_config_changed(rules)
        self.request_inlay_hint_refresh()

    async def apply_settings(self, settings: Any) -> bool:
        """Reload for a didChangeConfiguration payload; False when it belongs to another section."""
        if settings and rules_from_settings(settings) is None:
            return False
        await self.reload(settings)
        return True

    async def refresh_index(self) -> None:
        """Rebuild the index, refresh every open document and confirm to the user."""
        await self.controller.handle(Trigger.REFRESH_COMMAND)
        self.request_inlay_hint_refresh()
        self.window_show_message(lsp.ShowMessageParams(type=lsp.MessageType.Info, message=REFRESHED_MESSAGE))

    def hover_at(self, uri: str, position: lsp.Position) -> lsp.Hover | None:
        """Preview the destination of the link under the cursor."""
        document = self.to_document(uri)
        link = self.resolver.find_matching_link_at_position(document, self.from_client_position(document, position))
        if link is None:
            return None

        hover_info = get_hover_info(self.resolver, link)
        if not hover_info:
            return None

        return lsp.Hover(
            contents=lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=hover_info),
            range=self.range_encoder(document.lines)(to_lsp_range(link.source.range)),
        )

    def definitions_at(self, uri: str, position: lsp.Position) -> list[lsp.Location] | None:
        """Every destination of the link under the cursor."""
        document = self.to_document(uri)
        link = self.resolver.find_matching_link_at_position(document, self.from_client_position(document, position))
        if link is None or link.is_broken:
            return None
        return [
            to_lsp_location(location, self.destination_encoder(location.path))
            for location in link.destinations
        ]

    def document_links_for(self, uri: str) -> list[lsp.DocumentLink]:
        document = self.to_document(uri)
        return document_links(
            self.resolver.decorate(document),
            self.scanner,
            self.range_encoder(document.lines),
        )

    def inlay_hints_for(self, uri: str, within: lsp.Range) -> list[lsp.InlayHint]:
        document = self.to_document(uri)
        return inlay_hints(
            self.resolver.decorate(document),
            within=within,
            encode=self.range_encoder(document.lines),
        )


def uri_to_path(uri: str) -> Path:
    """Convert a file URI to a Path."""
    parsed = urlparse(uri)
    # Handle Windows paths
    path = unquote(parsed.path)
    if path.startswith("/") and len(path) > 2 and path[2] == ":":
        path = path[1:]  # Remove leading slash for Windows paths
    return Path(path)


def create_server(config_path: Path | None = None) -> AnchorLanguageServer:
    """Create and configure the LSP server."""
    server = AnchorLanguageServer(config_path)

    @server.feature(lsp.INITIALIZE)
    def initialize(params: lsp.InitializeParams) -> None:
        """Handle initialize - remember options and workspace roots."""
        server.initialization_options = params.initialization_options
        server.set_roots(server.workspace_roots())

    @server.feature(lsp.INITIALIZED)
    async def initialized(params: lsp.InitializedParams) -> None:
        """Build the initial index once the client is ready."""
        await server.reload(server.initialization_options)

    @server.feature(lsp.WORKSPACE_DID_CHANGE_CONFIGURATION)
    async def did_change_configuration(params: lsp.DidChangeConfigurationParams) -> None:
        """Rebuild when the `regexAnchor` section changes; ignore other sections."""
        await server.apply_settings(params.settings)

    @server.feature(lsp.WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
    async def did_change_workspace_folders(params: lsp.DidChangeWorkspaceFoldersParams) -> None:
        server.set_roots(server.workspace_roots())
        await server.controller.handle(Trigger.REFRESH_COMMAND)

    @server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
    async def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
        await server.controller.handle(Trigger.DOCUMENT_OPENED, server.to_document(params.text_document.uri))

    @server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
    async def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
        await server.controller.handle(Trigger.DOCUMENT_CHANGED, server.to_document(params.text_document.uri))

    @server.feature(lsp.TEXT_DOCUMENT_DID_SAVE)
    async def did_save(params: lsp.DidSaveTextDocumentParams) -> None:
        """Rebuild the index when a destination file is saved."""
        document = server.to_document(params.text_document.uri)
        await server.controller.on_saved(document.path, document)
        server.request_inlay_hint_refresh()

    @server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
    def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
        server.text_document_publish_diagnostics(
            lsp.PublishDiagnosticsParams(uri=params.text_document.uri, diagnostics=[])
        )

    @server.feature(lsp.TEXT_DOCUMENT_HOVER)
    def hover(params: lsp.HoverParams) -> lsp.Hover | None:
        return server.hover_at(params.text_document.uri, params.position)

    @server.feature(lsp.TEXT_DOCUMENT_DEFINITION)
    def definition(params: lsp.DefinitionParams) -> list[lsp.Location] | None:
        return server.definitions_at(params.text_document.uri, params.position)

    @server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_LINK)
    def document_link(params: lsp.DocumentLinkParams) -> list[lsp.DocumentLink]:
        return server.document_links_for(params.text_document.uri)

    @server.feature(lsp.TEXT_DOCUMENT_INLAY_HINT)
    def inlay_hint(params: lsp.InlayHintParams) -> list[lsp.InlayHint]:
        return server.inlay_hints_for(params.text_document.uri, params.range)

    @server.command(REFRESH_COMMAND)
    async def refresh_index(*args: Any) -> None:
        await server.refresh_index()

    return server


def start_server(
    config_path: Path | None = None,
    transport: str = "stdio",
    host: str = "localhost",
    port: int = 2087,
) -> None:
    """Start the LSP server.

    Args:
        config_path: Rules file used when the client sends no settings
        transport: Transport method ("stdio" or "tcp")
        host: TCP host
        port: TCP port
    """
    server = create_server(config_path)

    if transport == "stdio":
        server.start_io()
    else:
        # TCP transport for debugging
        server.start_tcp(host, port)
