"""Exceptions raised by the markdown document service."""

from __future__ import annotations


class DocumentError(Exception):
    """Base class for document lookup failures."""


class InvalidDocumentError(DocumentError):
    """Raised when the request does not name a document."""


class AccessDeniedError(DocumentError):
    """Raised for paths outside the project root or non-markdown files."""


class DocumentNotFoundError(DocumentError):
    """Raised when the named document does not exist."""
