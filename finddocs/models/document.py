"""Document models: ingestion input, persisted records, conversion output.

All models use frozen config; a record is never edited in place, only
created on successful conversion and dropped on removal.

    SourceFile        -- a file offered for ingestion (name/size/mtime + bytes)
    ConvertedDocument -- normalized conversion output (text + opaque metadata)
    DocumentRecord    -- the persisted, searchable document
    StoredDocument    -- a DocumentRecord as written to the primary tier,
                         possibly with its content swapped for a placeholder
    StorageStats      -- aggregate size figures for the document library
"""

from __future__ import annotations

import mimetypes
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

NO_CONTENT_SENTINEL = "No content extracted"


# ---------------------------------------------------------------------------
# SourceFile: the unit of ingestion input.
# ---------------------------------------------------------------------------
class SourceFile(BaseModel):
    """A file offered for ingestion.

    Identity attributes (name, size, modification time) feed the dedup
    hash.  Content is either held in ``data`` or read lazily from ``path``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Base file name, e.g. 'report.pdf'.")
    size_bytes: int = Field(ge=0, description="File size in bytes.")
    last_modified_ms: int = Field(ge=0, description="Modification time, epoch milliseconds.")
    relative_path: str | None = Field(
        default=None,
        description="Path relative to the selected directory, e.g. 'docs/q3/report.pdf'.",
    )
    mime_type: str | None = Field(default=None, description="Best-effort MIME type.")
    path: Path | None = Field(default=None, description="Filesystem location to read from.")
    data: bytes | None = Field(default=None, repr=False, description="In-memory file content.")

    @classmethod
    def from_path(cls, path: str | Path, root: str | Path | None = None) -> SourceFile:
        """Build a SourceFile from a file on disk.

        When *root* is given, ``relative_path`` is the path below the parent
        of *root*, so it starts with the directory name itself.
        """
        file_path = Path(path)
        stat = file_path.stat()
        relative: str | None = None
        if root is not None:
            root_path = Path(root)
            relative = file_path.relative_to(root_path.parent).as_posix()
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            name=file_path.name,
            size_bytes=stat.st_size,
            last_modified_ms=int(stat.st_mtime * 1000),
            relative_path=relative,
            mime_type=mime_type,
            path=file_path,
        )

    @classmethod
    def from_bytes(
        cls,
        name: str,
        data: bytes,
        last_modified_ms: int = 0,
        relative_path: str | None = None,
    ) -> SourceFile:
        mime_type, _ = mimetypes.guess_type(name)
        return cls(
            name=name,
            size_bytes=len(data),
            last_modified_ms=last_modified_ms,
            relative_path=relative_path,
            mime_type=mime_type,
            data=data,
        )

    @property
    def extension(self) -> str:
        """Lower-cased extension without the dot, or ``""`` when there is none."""
        if "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[-1].lower()

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError(f"SourceFile '{self.name}' has neither data nor a path")
        return self.path.read_bytes()


# ---------------------------------------------------------------------------
# ConvertedDocument: tagged conversion result.
# ---------------------------------------------------------------------------
class ContentKind(str, Enum):  # noqa: UP042
    """Which field of the conversion payload the text came from."""

    MARKDOWN = "md_content"
    TEXT = "text_content"
    HTML = "html_content"
    NONE = "none"


# Probed in order; the first non-empty field wins.
CONTENT_PRIORITY: tuple[ContentKind, ...] = (
    ContentKind.MARKDOWN,
    ContentKind.TEXT,
    ContentKind.HTML,
)
_CONTENT_FIELDS = frozenset(kind.value for kind in CONTENT_PRIORITY)


class ConvertedDocument(BaseModel):
    """Normalized output of a successful conversion job.

    ``content`` is always a string: when no content field is present it
    holds :data:`NO_CONTENT_SENTINEL` and ``kind`` is ``NONE``.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    kind: ContentKind
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> ConvertedDocument:
        """Extract text from a ``/v1/result`` payload by content priority."""
        document = (payload or {}).get("document")
        if not isinstance(document, dict):
            document = {}
        # Text fields live in ``content`` only.
        metadata = {key: value for key, value in document.items() if key not in _CONTENT_FIELDS}
        for kind in CONTENT_PRIORITY:
            value = document.get(kind.value)
            if isinstance(value, str) and value:
                return cls(content=value, kind=kind, metadata=metadata)
        return cls(content=NO_CONTENT_SENTINEL, kind=ContentKind.NONE, metadata=metadata)


# ---------------------------------------------------------------------------
# DocumentRecord: the searchable, persisted document.
# ---------------------------------------------------------------------------
class DocumentRecord(BaseModel):
    """A processed document held in the library.

    ``content_hash`` is unique among live records; it is the dedup key
    derived from the source file's name, size and modification time.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    filename: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    source_path: str | None = None
    content_hash: str
    file_type: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class StoredDocument(DocumentRecord):
    """Primary-tier representation of a :class:`DocumentRecord`.

    When ``overflow_ref`` is set, ``content`` is a placeholder and the full
    text lives in the overflow tier under that reference.
    """

    overflow_ref: str | None = None

    def to_record(self, content: str | None = None) -> DocumentRecord:
        data = self.model_dump(exclude={"overflow_ref"})
        if content is not None:
            data["content"] = content
        return DocumentRecord(**data)


# ---------------------------------------------------------------------------
# StorageStats: library size snapshot.
# ---------------------------------------------------------------------------
class StorageStats(BaseModel):
    """Aggregate figures for the document library."""

    model_config = ConfigDict(frozen=True)

    total_docs: int = Field(default=0, ge=0)
    total_chars: int = Field(default=0, ge=0)
    avg_chars: int = Field(default=0, ge=0)
    storage_used_mb: float = Field(default=0.0, ge=0.0)
