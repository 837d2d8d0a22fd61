"""Library index: per-request lookup structure over a ContentLibrary.

Built once per library version and passed explicitly to every engine call,
so no module-level cache is shared between concurrent requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from livenew.domains.rail.content.models import (
    CONTENT_KINDS,
    ContentItem,
    ContentKind,
    ContentLibrary,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryIndex:
    """Lookups by id, tag and novelty group for each content kind."""

    library: ContentLibrary
    _by_id: dict[str, dict[str, ContentItem]] = field(default_factory=dict, repr=False)
    _by_tag: dict[str, dict[str, tuple[ContentItem, ...]]] = field(default_factory=dict, repr=False)
    _by_group: dict[str, dict[str, tuple[ContentItem, ...]]] = field(default_factory=dict, repr=False)

    @property
    def version(self) -> str:
        return self.library.version

    def items(self, kind: ContentKind) -> tuple[ContentItem, ...]:
        """All items of ``kind``, sorted by id."""
        return tuple(self._by_id[kind][k] for k in sorted(self._by_id[kind]))

    def get(self, kind: ContentKind, item_id: str | None) -> ContentItem | None:
        """Look up an item by id."""
        if not item_id:
            return None
        return self._by_id[kind].get(item_id)

    def by_tag(self, kind: ContentKind, tag: str) -> tuple[ContentItem, ...]:
        return self._by_tag[kind].get(tag, ())

    def by_novelty_group(self, kind: ContentKind, group: str) -> tuple[ContentItem, ...]:
        return self._by_group[kind].get(group, ())

    def candidates(self, kind: ContentKind, tag: str | None = None) -> tuple[ContentItem, ...]:
        """Items carrying ``tag``, or every item of ``kind`` if none do."""
        if not tag:
            return self.items(kind)
        return self.by_tag(kind, tag) or self.items(kind)

    def novelty_group_of(self, kind: ContentKind, item_id: str | None) -> str | None:
        item = self.get(kind, item_id)
        return item.novelty_group if item else None


def build_library_index(library: ContentLibrary) -> LibraryIndex:
    """Index ``library``. Duplicate ids within a kind are rejected."""
    by_id: dict[str, dict[str, ContentItem]] = {}
    by_tag: dict[str, dict[str, tuple[ContentItem, ...]]] = {}
    by_group: dict[str, dict[str, tuple[ContentItem, ...]]] = {}

    for kind in CONTENT_KINDS:
        ids: dict[str, ContentItem] = {}
        tags: dict[str, list[ContentItem]] = {}
        groups: dict[str, list[ContentItem]] = {}
        for item in sorted(library.items(kind), key=lambda i: i.id):
            if item.id in ids:
                raise ValueError(f"Duplicate {kind} id in library {library.version!r}: {item.id!r}")
            ids[item.id] = item
            for tag in item.tags:
                tags.setdefault(tag, []).append(item)
            if item.novelty_group:
                groups.setdefault(item.novelty_group, []).append(item)
        by_id[kind] = ids
        by_tag[kind] = {t: tuple(v) for t, v in tags.items()}
        by_group[kind] = {g: tuple(v) for g, v in groups.items()}

    logger.debug(
        "Indexed library %s: %d resets, %d movement, %d nutrition",
        library.version,
        len(by_id["reset"]),
        len(by_id["movement"]),
        len(by_id["nutrition"]),
    )
    return LibraryIndex(library=library, _by_id=by_id, _by_tag=by_tag, _by_group=by_group)
