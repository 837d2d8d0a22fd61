"""Data models for the content library (resets, movement, nutrition)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ContentKind = Literal["reset", "movement", "nutrition"]

CONTENT_KINDS: tuple[ContentKind, ...] = ("reset", "movement", "nutrition")

# Bounds every library item must meet; the engine filters against the same values.
RESET_MIN_SEC = 120
RESET_MAX_SEC = 300
# Movement intensity scale (1 = gentlest).
MAX_INTENSITY = 5


@dataclass(frozen=True)
class ContentItem:
    """A single library entry. Immutable; ids are stable and sortable."""

    id: str
    kind: ContentKind
    title: str
    tags: tuple[str, ...] = ()
    contra_tags: tuple[str, ...] = ()
    novelty_group: str | None = None
    duration_sec: int | None = None      # resets
    duration_min: int | None = None      # movement
    intensity: int | None = None         # movement, 1 (gentlest) .. 5
    steps: tuple[str, ...] = ()
    bullets: tuple[str, ...] = ()
    ideal_time_of_day: tuple[str, ...] = ()

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    @property
    def equipment_tags(self) -> frozenset[str]:
        """``eq:*`` requirements, whether declared in tags or contra_tags."""
        return frozenset(t for t in (*self.tags, *self.contra_tags) if t.startswith("eq:"))

    def summary(self) -> dict[str, Any]:
        """Wire shape used inside the day contract."""
        if self.kind == "reset":
            return {
                "id": self.id,
                "title": self.title,
                "durationSec": self.duration_sec,
                "steps": list(self.steps),
                "tags": list(self.tags),
            }
        if self.kind == "movement":
            return {
                "id": self.id,
                "title": self.title,
                "durationMin": self.duration_min,
                "intensity": self.intensity,
                "steps": list(self.steps),
                "tags": list(self.tags),
            }
        return {
            "id": self.id,
            "title": self.title,
            "bullets": list(self.bullets),
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class ContentLibrary:
    """A versioned snapshot of all three item kinds."""

    version: str
    resets: tuple[ContentItem, ...] = ()
    movement: tuple[ContentItem, ...] = ()
    nutrition: tuple[ContentItem, ...] = ()

    def items(self, kind: ContentKind) -> tuple[ContentItem, ...]:
        if kind == "reset":
            return self.resets
        if kind == "movement":
            return self.movement
        return self.nutrition


@dataclass
class ContentValidationIssue:
    """One problem found while validating a raw library entry."""

    kind: str
    item_id: str | None
    field: str
    message: str
    extra: dict[str, Any] = field(default_factory=dict)
