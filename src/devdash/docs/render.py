"""Markdown to sanitized HTML rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING

import markdown
import nh3

if TYPE_CHECKING:
    from collections.abc import Mapping

_EXTENSIONS = ("fenced_code", "tables", "sane_lists")

# Fenced code blocks carry a ``language-*`` class used for highlighting.
_EXTRA_ATTRIBUTES: dict[str, set[str]] = {
    "code": {"class"},
    "pre": {"class"},
    "th": {"align", "style"},
    "td": {"align", "style"},
}


def _default_attributes() -> dict[str, set[str]]:
    attributes = {tag: set(attrs) for tag, attrs in nh3.ALLOWED_ATTRIBUTES.items()}
    for tag, attrs in _EXTRA_ATTRIBUTES.items():
        attributes.setdefault(tag, set()).update(attrs)
    return attributes


def sanitize_html(html: str, allowed_attributes: Mapping[str, set[str]] | None = None) -> str:
    """Strip scripts, event handlers and unknown attributes from *html*."""
    attributes = dict(allowed_attributes) if allowed_attributes is not None else _default_attributes()
    return nh3.clean(html, attributes=attributes)


class MarkdownRenderer:
    """Render markdown text to sanitized HTML."""

    def __init__(self, allowed_attributes: Mapping[str, set[str]] | None = None) -> None:
        self._allowed_attributes = allowed_attributes

    def render(self, text: str) -> str:
        raw_html = markdown.markdown(text, extensions=list(_EXTENSIONS))
        return sanitize_html(raw_html, self._allowed_attributes)
