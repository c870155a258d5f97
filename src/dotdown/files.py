"""File access used by `include`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class FileReader(Protocol):
    """Reads source text; returns None when the file cannot be found."""

    def read_text(self, path: Path) -> str | None: ...


class LocalFileReader:
    """FileReader backed by the local filesystem."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def read_text(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding=self.encoding)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            logger.debug("include target not found: %s", path)
            return None


class MemoryFileReader:
    """FileReader over an in-memory mapping of resolved path -> text."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = {str(Path(k).resolve()): v for k, v in (files or {}).items()}

    def read_text(self, path: Path) -> str | None:
        return self.files.get(str(path.resolve()))
