"""Local directory and file primitives, run off the event loop via ``asyncio.to_thread``."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


def _append(path: Path, text: str) -> None:
    if not text.endswith("\n"):
        text += "\n"
    # One write() per call on an "a" handle: the line lands after whatever is
    # in the file when the write happens, and the handle is released at once.
    with path.open("a", encoding="utf-8", newline="") as f:
        f.write(text)


def _list(path: Path) -> List[str]:
    if not path.is_dir():
        return []
    return sorted(entry.name for entry in path.iterdir())


class LocalFileSystem:
    """``FileSystem`` port backed by the local disk."""

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(path.exists)

    async def ensure_directory(self, path: Path) -> None:
        # A regular file at *path* is not a directory: mkdir raises FileExistsError.
        if await asyncio.to_thread(path.is_dir):
            return
        logger.debug("Creating metrics directory %s", path)
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)

    async def append_line(self, path: Path, text: str) -> None:
        await asyncio.to_thread(_append, path, text)

    async def read_whole_file(self, path: Path) -> str:
        # Undecodable bytes become lone surrogates so each line can be rejected on its own.
        return await asyncio.to_thread(path.read_text, encoding="utf-8", errors="surrogateescape")

    async def list_directory(self, path: Path) -> List[str]:
        return await asyncio.to_thread(_list, path)
