"""Seeded deterministic selection with continuity preference.

Given an eligible pool, ``choose`` keeps today's day-state item if it is
still eligible, else the week-seed item, else draws a seeded pick. A user
re-submitting a slightly different check-in therefore keeps their items
unless one became ineligible.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from livenew.domains.rail.content.models import ContentItem

ChoiceSource = Literal["day_state", "week_seed", "seed", "none"]


def hash_to_int(seed: str) -> int:
    """First 8 hex chars of SHA-256(seed) as an unsigned 32-bit integer."""
    return int(hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8], 16)


def pick_by_seed(pool: Sequence[ContentItem], seed: str) -> ContentItem | None:
    """Deterministic pick: sort by id, index = hash_to_int(seed) % len(pool)."""
    if not pool:
        return None
    ordered = sorted(pool, key=lambda item: item.id)
    return ordered[hash_to_int(seed) % len(ordered)]


def keep_if_eligible(pool: Sequence[ContentItem], item_id: str | None) -> ContentItem | None:
    if not item_id:
        return None
    for item in pool:
        if item.id == item_id:
            return item
    return None


@dataclass(frozen=True)
class Choice:
    item: ContentItem | None
    source: ChoiceSource


def choose(
    pool: Sequence[ContentItem],
    day_state_id: str | None,
    week_seed_id: str | None,
    seed: str | None,
) -> Choice:
    """Prefer the day-state id, then the week-seed id, then a seeded pick.

    Passing ``seed=None`` disables the fresh draw (continuity only).
    """
    kept = keep_if_eligible(pool, day_state_id)
    if kept is not None:
        return Choice(kept, "day_state")
    seeded = keep_if_eligible(pool, week_seed_id)
    if seeded is not None:
        return Choice(seeded, "week_seed")
    if seed is None:
        return Choice(None, "none")
    picked = pick_by_seed(pool, seed)
    return Choice(picked, "seed" if picked is not None else "none")


def seed_base(
    user_id: str,
    date_key: str,
    profile: str,
    last_quick_signal: str | None,
    lib_version: str,
    check_in_signature: str,
) -> str:
    """``user|date|profile|signal|libVersion|stress-sleep-energy-time``."""
    return "|".join([
        user_id or "",
        date_key or "",
        profile,
        last_quick_signal or "",
        lib_version,
        check_in_signature,
    ])


def slot_seed(base: str, kind: str) -> str:
    """Per-slot seed: ``base|reset``, ``base|movement`` or ``base|nutrition``."""
    return f"{base}|{kind}"
