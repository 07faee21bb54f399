"""
Hover content for source-pattern matches.

A resolved link shows the first destination and its preview window; a
broken link shows a short notice.
"""

from __future__ import annotations

from ..links.resolver import LinkResolver
from ..models import DestinationContent, ResolvedLink
from .diagnostics import link_target


def get_hover_info(resolver: LinkResolver, link: ResolvedLink) -> str | None:
    """
    Get markdown hover content for a link.

    Returns None when the chosen preview disables hover or the destination
    cannot be read.
    """
    if link.is_broken:
        return format_broken_hover(link.source.link_text)

    destination = link.destination
    preview = link.preview
    if destination is None or preview is None or not preview.hover:
        return None

    content = resolver.get_destination_content(destination, preview)
    if content is None:
        return None

    return format_destination_hover(
        content,
        display_path=resolver.scanner.display_path(destination.path),
        target=link_target(destination),
        more=len(link.destinations) - 1,
    )


def format_destination_hover(content: DestinationContent, display_path: str, target: str, more: int = 0) -> str:
    lines = []

    lines.append("**Link Target:**")
    lines.append(f"[{display_path}:{content.target_line + 1}]({target})")
    if more > 0:
        lines.append(f"*(+{more} more destination{'s' if more > 1 else ''})*")
    lines.append("")

    # Target line marked with '>' in the gutter
    lines.append(f"```{content.language}")
    for offset, text in enumerate(content.lines):
        line_no = content.start_line + offset
        marker = ">" if line_no == content.target_line else ":"
        lines.append(f"{line_no + 1}{marker} {text}")
    lines.append("```")

    return "\n".join(lines)


def format_broken_hover(key: str) -> str:
    return f"**Broken Link:** `{key}` (Destination not found)"
