"""Markdown browser: list, read and render project markdown files."""

from devdash.docs.errors import (
    AccessDeniedError,
    DocumentError,
    DocumentNotFoundError,
    InvalidDocumentError,
)
from devdash.docs.files import find_markdown_files
from devdash.docs.render import MarkdownRenderer, sanitize_html
from devdash.docs.service import Document, DocumentService

__all__ = [
    "AccessDeniedError",
    "Document",
    "DocumentError",
    "DocumentNotFoundError",
    "DocumentService",
    "InvalidDocumentError",
    "MarkdownRenderer",
    "find_markdown_files",
    "sanitize_html",
]
