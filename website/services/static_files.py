from __future__ import annotations

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from website.services.paths import sanitize_path

_INDEX_FILE = "index.html"
_DEFAULT_CONTENT_TYPE = "application/octet-stream"

logger = logging.getLogger(__name__)


class WebRootError(RuntimeError):
    """The web root is missing or could not be read."""


@dataclass(frozen=True)
class FileData:
    content_type: str
    content: bytes
    mod_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def etag(self) -> str:
        return f'"{int(self.mod_time.timestamp())}"'


def _content_type(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    if guessed is None:
        return _DEFAULT_CONTENT_TYPE
    if guessed.startswith("text/") or guessed in {"application/javascript", "application/json"}:
        return f"{guessed}; charset=utf-8"
    return guessed


def _read(path: Path) -> FileData:
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise WebRootError(f"Failed to read {path}: {exc}") from exc
    return FileData(content_type=_content_type(path.name), content=content)


class MemoryStore:
    """Static site content held in memory, keyed by URL path."""

    def __init__(self, files: dict[str, FileData] | None = None) -> None:
        self._files: dict[str, FileData] = dict(files or {})

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, url_path: str) -> bool:
        return url_path in self._files

    @property
    def total_bytes(self) -> int:
        return sum(len(fd.content) for fd in self._files.values())

    @classmethod
    def load(cls, root: Path) -> "MemoryStore":
        """Walk ``root`` and load every file plus each directory's index.html."""

        if not root.is_dir():
            raise WebRootError(f"Web root {root} is not a directory")

        files: dict[str, FileData] = {}

        def _on_error(exc: OSError) -> None:
            raise WebRootError(f"Error accessing path {exc.filename!r}: {exc}") from exc

        for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_error):
            directory = Path(dirpath)
            rel_dir = directory.relative_to(root).as_posix()
            dir_url = "/" if rel_dir == "." else sanitize_path(f"/{rel_dir}/")

            index_path = directory / _INDEX_FILE
            if index_path.is_file():
                files[dir_url] = _read(index_path)
                logger.debug("Directory %s loaded with index.html", dir_url)
            else:
                logger.debug("Directory %s does not contain an index.html", dir_url)

            for name in filenames:
                url_path = f"{dir_url}{sanitize_path(name)}"
                files[url_path] = _read(directory / name)
                logger.debug("File %s loaded into memory", url_path)

        store = cls(files)
        logger.info("Loaded %d paths (%d bytes) from %s into memory", len(store), store.total_bytes, root)
        return store

    def lookup(self, request_path: str) -> tuple[str, FileData] | None:
        """Resolve a request path to stored content, trying directory index pages."""

        path = sanitize_path(request_path)
        if path.endswith("/"):
            path += _INDEX_FILE

        found = self._files.get(path)
        if found is None and not path.endswith(f"/{_INDEX_FILE}"):
            index_path = f"{path}/{_INDEX_FILE}"
            found = self._files.get(index_path)
            if found is not None:
                path = index_path

        if found is None:
            return None
        return path, found
