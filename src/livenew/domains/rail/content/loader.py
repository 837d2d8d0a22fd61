"""Content library loader: reads versioned YAML definitions from disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from livenew.domains.rail.content.models import (
    MAX_INTENSITY,
    RESET_MAX_SEC,
    RESET_MIN_SEC,
    ContentItem,
    ContentKind,
    ContentLibrary,
    ContentValidationIssue,
)

logger = logging.getLogger(__name__)

# Bundled library shipped with the package.
DEFAULT_LIBRARY_DIR = Path(__file__).resolve().parent / "library"

_KIND_FILES: dict[ContentKind, str] = {
    "reset": "resets.yaml",
    "movement": "movement.yaml",
    "nutrition": "nutrition.yaml",
}


def _string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_content_item(kind: ContentKind, data: Any) -> list[ContentValidationIssue]:
    """Validate one raw library entry. Returns an empty list when valid."""
    issues: list[ContentValidationIssue] = []

    def issue(field: str, message: str) -> None:
        item_id = data.get("id") if isinstance(data, dict) else None
        issues.append(ContentValidationIssue(kind=kind, item_id=item_id, field=field, message=message))

    if not isinstance(data, dict):
        issue("item", "item must be a mapping")
        return issues
    if not isinstance(data.get("id"), str) or not data["id"].strip():
        issue("id", "id is required")
    if not isinstance(data.get("title"), str) or not data["title"].strip():
        issue("title", "title is required")
    for list_field in ("tags", "contraTags", "steps", "bullets", "idealTimeOfDay"):
        if list_field in data and not _string_list(data[list_field]):
            issue(list_field, f"{list_field} must be a list of strings")
    if "noveltyGroup" in data and data["noveltyGroup"] is not None and not isinstance(data["noveltyGroup"], str):
        issue("noveltyGroup", "noveltyGroup must be a string")

    if kind == "reset":
        seconds = data.get("durationSec")
        if not _positive_int(seconds):
            issue("durationSec", "durationSec is required")
        elif not RESET_MIN_SEC <= seconds <= RESET_MAX_SEC:
            issue("durationSec", f"durationSec must be {RESET_MIN_SEC}..{RESET_MAX_SEC}")
    elif kind == "movement":
        if not _positive_int(data.get("durationMin")):
            issue("durationMin", "durationMin must be a positive integer")
        intensity = data.get("intensity")
        if not _positive_int(intensity) or intensity > MAX_INTENSITY:
            issue("intensity", f"intensity must be 1..{MAX_INTENSITY}")
    return issues


def parse_content_item(kind: ContentKind, data: dict[str, Any]) -> ContentItem:
    """Turn a validated raw entry into a ContentItem."""
    return ContentItem(
        id=data["id"].strip(),
        kind=kind,
        title=data["title"].strip(),
        tags=tuple(data.get("tags", [])),
        contra_tags=tuple(data.get("contraTags", [])),
        novelty_group=data.get("noveltyGroup"),
        duration_sec=data.get("durationSec"),
        duration_min=data.get("durationMin"),
        intensity=data.get("intensity"),
        steps=tuple(data.get("steps", [])),
        bullets=tuple(data.get("bullets", [])),
        ideal_time_of_day=tuple(data.get("idealTimeOfDay", [])),
    )


def parse_items(kind: ContentKind, raw_items: Any) -> tuple[ContentItem, ...]:
    """Parse a list of raw entries, skipping (and logging) invalid ones."""
    if not isinstance(raw_items, list):
        logger.warning("Expected a list of %s items, got %s", kind, type(raw_items).__name__)
        return ()
    items: list[ContentItem] = []
    for raw in raw_items:
        issues = validate_content_item(kind, raw)
        if issues:
            for problem in issues:
                logger.error(
                    "Skipping invalid %s item %r: %s (%s)",
                    kind, problem.item_id, problem.message, problem.field,
                )
            continue
        items.append(parse_content_item(kind, raw))
    return tuple(items)


def library_from_mapping(data: dict[str, Any]) -> ContentLibrary:
    """Build a library from an in-memory mapping (e.g. a snapshot payload).

    Expected keys: ``version``, ``resets``, ``movement``, ``nutrition``.
    """
    return ContentLibrary(
        version=str(data.get("version") or "unversioned"),
        resets=parse_items("reset", data.get("resets", [])),
        movement=parse_items("movement", data.get("movement", [])),
        nutrition=parse_items("nutrition", data.get("nutrition", [])),
    )


def _read_yaml(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_library_directory(directory: str | Path | None = None) -> ContentLibrary:
    """Load a library from ``directory`` (default: the bundled library).

    The directory holds ``library.yaml`` (with ``version``) and one YAML
    list per kind. Missing kind files yield an empty pool for that kind.
    """
    directory = Path(directory) if directory else DEFAULT_LIBRARY_DIR
    if not directory.is_dir():
        raise FileNotFoundError(f"Content library directory does not exist: {directory}")

    meta_path = directory / "library.yaml"
    meta = _read_yaml(meta_path) if meta_path.is_file() else {}
    version = str((meta or {}).get("version") or directory.name)

    parsed: dict[ContentKind, tuple[ContentItem, ...]] = {}
    for kind, filename in _KIND_FILES.items():
        path = directory / filename
        if not path.is_file():
            logger.warning("Library %s has no %s file", version, filename)
            parsed[kind] = ()
            continue
        parsed[kind] = parse_items(kind, _read_yaml(path) or [])

    library = ContentLibrary(
        version=version,
        resets=parsed["reset"],
        movement=parsed["movement"],
        nutrition=parsed["nutrition"],
    )
    logger.info(
        "Loaded content library %s from %s (%d resets, %d movement, %d nutrition)",
        version, directory, len(library.resets), len(library.movement), len(library.nutrition),
    )
    return library
