"""Whole-file replace for shared workspace files.

Every structural write goes through a uniquely named temporary file in the
target's directory followed by ``os.replace``, so concurrent readers see
either the old or the new content, never a partial write.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from pathlib import Path


def atomic_write_text(path: Path, content: str) -> None:
    """Write content to path via temp file + rename.

    Raises:
        OSError: If the temp file cannot be written or renamed. The temp
            file is removed before the error propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(temp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(temp_name)
        raise


def read_text(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


async def read_text_async(path: Path) -> str:
    """Read a text file off the event loop thread."""
    return await asyncio.to_thread(read_text, path)


async def write_text_async(path: Path, content: str) -> None:
    """Atomically replace a text file off the event loop thread."""
    await asyncio.to_thread(atomic_write_text, path, content)


async def unlink_async(path: Path) -> None:
    await asyncio.to_thread(path.unlink)
