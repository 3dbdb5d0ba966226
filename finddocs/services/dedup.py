"""File identity hashing and the dedup index.

A file's identity is its name, size and modification time; content is
never read.  Two different files that agree on all three are treated as
the same file, and a renamed copy of an ingested file is treated as new.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from finddocs.models.document import SourceFile


def compute_file_hash(file_name: str, size_bytes: int, last_modified_ms: int) -> str:
    """Return the dedup key ``"<name>_<size>_<lastModifiedMs>"``."""
    return f"{file_name}_{size_bytes}_{last_modified_ms}"


def hash_source_file(source: SourceFile) -> str:
    return compute_file_hash(source.name, source.size_bytes, source.last_modified_ms)


class DedupIndex:
    """Set of content hashes for every successfully ingested document.

    Insertion order is kept so the persisted list is stable across saves.
    """

    def __init__(self, hashes: Iterable[str] = ()) -> None:
        self._hashes: dict[str, None] = dict.fromkeys(hashes)

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._hashes

    def __len__(self) -> int:
        return len(self._hashes)

    def __iter__(self) -> Iterator[str]:
        return iter(self._hashes)

    def contains_file(self, source: SourceFile) -> bool:
        return hash_source_file(source) in self._hashes

    def add(self, content_hash: str) -> None:
        self._hashes[content_hash] = None

    def discard(self, content_hash: str) -> bool:
        """Evict *content_hash*; returns ``True`` if it was present."""
        return self._hashes.pop(content_hash, 0) is None

    def clear(self) -> None:
        self._hashes.clear()

    def to_list(self) -> list[str]:
        return list(self._hashes)
