"""Project-scoped markdown document access."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from devdash.docs.errors import AccessDeniedError, DocumentNotFoundError, InvalidDocumentError
from devdash.docs.files import DEFAULT_EXCLUDED_DIRS, find_markdown_files
from devdash.docs.render import MarkdownRenderer

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from devdash.config import DevdashConfig

logger = logging.getLogger(__name__)


@dataclass
class Document:
    """A markdown file with its rendered HTML."""

    content: str
    html: str
    file: str
    """Path relative to the project root."""

    def to_dict(self) -> dict[str, str]:
        return {"content": self.content, "html": self.html, "file": self.file}


class DocumentService:
    """List and render markdown files, confined to a project root."""

    def __init__(
        self,
        root: Path,
        *,
        extension: str = ".md",
        excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
        renderer: MarkdownRenderer | None = None,
    ) -> None:
        self._root = root.resolve()
        self._extension = extension
        self._excluded_dirs = frozenset(excluded_dirs)
        self._renderer = renderer or MarkdownRenderer()

    @classmethod
    def from_config(cls, config: DevdashConfig) -> DocumentService:
        return cls(
            config.root_path,
            extension=config.markdown.extension,
            excluded_dirs=config.markdown.excluded_dirs,
        )

    @property
    def root(self) -> Path:
        return self._root

    def list_files(self) -> list[str]:
        """Return markdown paths relative to the project root."""
        return find_markdown_files(self._root, self._extension, self._excluded_dirs)

    def read(self, file: str | None) -> Document:
        """Read and render *file*, a path relative to the project root.

        Raises:
            InvalidDocumentError: If *file* is empty.
            AccessDeniedError: If *file* escapes the root or has the wrong extension.
            DocumentNotFoundError: If *file* does not exist.
            OSError: For an unusable path or any other read failure.
        """
        if not file:
            raise InvalidDocumentError("File parameter is required")

        try:
            resolved = (self._root / file).resolve()
        except ValueError as exc:
            # Embedded NUL bytes cannot name a file on any supported platform.
            raise OSError(f"Invalid document path: {file!r}") from exc
        if not resolved.is_relative_to(self._root):
            logger.warning("Rejected document path outside project root: %s", file)
            raise AccessDeniedError("Access denied: path outside project root")

        if not file.endswith(self._extension):
            raise AccessDeniedError("Only markdown files are allowed")

        try:
            content = resolved.read_text(encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise DocumentNotFoundError("File not found") from exc

        return Document(
            content=content,
            html=self._renderer.render(content),
            file=resolved.relative_to(self._root).as_posix(),
        )
