"""
LSP server for regex-anchor links.

This module provides:
- Clickable document links and go-to-definition for resolved matches
- Broken-link diagnostics
- Hover previews of destination lines
- Inlay hints with text extracted from destinations
"""

from .server import create_server, start_server

__all__ = ["create_server", "start_server"]
