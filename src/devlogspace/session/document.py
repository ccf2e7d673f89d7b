"""Session metadata stored as a delimited block inside the workspace document.

The workspace document is markdown for humans. Machine state rides at its end
inside an HTML comment:

    <!-- DEVLOG_METADATA (do not edit manually)
    { ...SessionMetadata JSON... }
    -->

``EmbeddedRegion`` knows only about the two sentinels and is the single place
that edits documents; ``MetadataStore`` layers JSON parsing on top and does
read-modify-write through atomic replace.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from devlogspace.logging import get_logger
from devlogspace.session.schema import SessionMetadata
from devlogspace.workspace.files import read_text_async, write_text_async

log = get_logger("metadata")

METADATA_START = "<!-- DEVLOG_METADATA (do not edit manually)"
METADATA_END = "-->"


class MetadataWriteError(RuntimeError):
    """Raised when the workspace document cannot be read or replaced."""


class EmbeddedRegion:
    """A sentinel-delimited region at the end of a text document."""

    def __init__(self, start: str, end: str) -> None:
        self.start = start
        self.end = end

    def _bounds(self, content: str) -> tuple[int, int] | None:
        # The region is always written last; earlier copies of the start
        # sentinel are quoted human text.
        start_idx = content.rfind(self.start)
        if start_idx == -1:
            return None
        end_idx = content.find(self.end, start_idx + len(self.start))
        if end_idx == -1:
            return None
        return start_idx, end_idx

    def read(self, content: str) -> str | None:
        """Body between the sentinels, stripped; None if either is missing."""
        bounds = self._bounds(content)
        if bounds is None:
            return None
        start_idx, end_idx = bounds
        return content[start_idx + len(self.start):end_idx].strip()

    def strip(self, content: str) -> str:
        """Content with the region removed."""
        bounds = self._bounds(content)
        if bounds is None:
            return content
        start_idx, end_idx = bounds
        return content[:start_idx].rstrip() + content[end_idx + len(self.end):]

    def replace(self, content: str, body: str) -> str:
        """Content with any old region removed and a new one appended."""
        document = self.strip(content).rstrip()
        return f"{document}\n\n{self.start}\n{body}\n{self.end}"

    def insert_before(self, content: str, text: str) -> str:
        """Append text to the human-readable part, keeping the region last."""
        body = self.read(content)
        document = self.strip(content).rstrip() + text
        if body is None:
            return document
        return self.replace(document, body)


METADATA_REGION = EmbeddedRegion(METADATA_START, METADATA_END)


class MetadataStore:
    """Read and atomically rewrite the SessionMetadata block of a document."""

    def __init__(self, region: EmbeddedRegion = METADATA_REGION) -> None:
        self._region = region

    @property
    def region(self) -> EmbeddedRegion:
        return self._region

    def parse(self, content: str) -> SessionMetadata | None:
        body = self._region.read(content)
        if body is None:
            return None
        try:
            return SessionMetadata.model_validate(json.loads(body))
        except (json.JSONDecodeError, ValidationError) as e:
            log.warning("Ignoring malformed session metadata: %s", e)
            return None

    def render(self, content: str, metadata: SessionMetadata) -> str:
        # A literal close sentinel can only occur inside a JSON string.
        body = metadata.to_json().replace(self._region.end, self._region.end[:-1] + "\\u003e")
        return self._region.replace(content, body)

    async def extract(self, path: Path) -> SessionMetadata | None:
        """Metadata embedded in the document at path, or None. Never raises."""
        try:
            content = await read_text_async(path)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Could not read %s: %s", path, e)
            return None
        return self.parse(content)

    async def update(self, path: Path, metadata: SessionMetadata) -> None:
        """Replace the metadata block of the document at path.

        Raises:
            MetadataWriteError: If the document cannot be read or replaced.
        """
        try:
            content = await read_text_async(path)
            await write_text_async(path, self.render(content, metadata))
        except (OSError, UnicodeDecodeError) as e:
            raise MetadataWriteError(f"Failed to update metadata in {path}: {e}") from e


_default_store = MetadataStore()


async def extract_metadata(path: Path) -> SessionMetadata | None:
    return await _default_store.extract(Path(path))


async def update_metadata(path: Path, metadata: SessionMetadata) -> None:
    await _default_store.update(Path(path), metadata)
