"""Shared test fixtures for LiveNew rail tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENV_MODE", "test")
    monkeypatch.delenv("RULES_FROZEN", raising=False)
    monkeypatch.setenv("LIBRARY_DIR", "")
    monkeypatch.setenv("PARAMETERS_PATH", "")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from livenew.core.config.env_policy import EnvPolicy, policy_for_mode  # noqa: E402
from livenew.domains.rail.content.index import LibraryIndex, build_library_index  # noqa: E402
from livenew.domains.rail.content.loader import library_from_mapping, load_library_directory  # noqa: E402
from livenew.domains.rail.domain_logic.rail_models import CheckIn, Constraints  # noqa: E402


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

def _reset(id: str, seconds: int = 180, tags: list[str] | None = None, **extra: Any) -> dict[str, Any]:
    return {"id": id, "title": f"Reset {id}", "durationSec": seconds, "tags": tags or [], **extra}


def _movement(
    id: str,
    minutes: int = 10,
    intensity: int = 1,
    tags: list[str] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    return {
        "id": id,
        "title": f"Movement {id}",
        "durationMin": minutes,
        "intensity": intensity,
        "tags": tags if tags is not None else ["light", "eq:none"],
        **extra,
    }


def _nutrition(id: str, tags: list[str] | None = None, **extra: Any) -> dict[str, Any]:
    return {"id": id, "title": f"Nutrition {id}", "tags": tags or [], **extra}


def _index(
    resets: list[dict[str, Any]] | None = None,
    movement: list[dict[str, Any]] | None = None,
    nutrition: list[dict[str, Any]] | None = None,
    version: str = "test-lib",
) -> LibraryIndex:
    """Index an in-memory library built from raw item dicts."""
    return build_library_index(library_from_mapping({
        "version": version,
        "resets": resets or [],
        "movement": movement or [],
        "nutrition": nutrition or [],
    }))


@pytest.fixture(scope="session")
def library() -> LibraryIndex:
    """The bundled content library."""
    return build_library_index(load_library_directory())


# ---------------------------------------------------------------------------
# Check-ins and policy
# ---------------------------------------------------------------------------

@pytest.fixture
def calm_check_in() -> CheckIn:
    """Balanced day with room for movement (load 23, capacity 70)."""
    return CheckIn(stress=3, sleep_quality=8, energy=8, time_available_min=30)


@pytest.fixture
def stressed_check_in() -> CheckIn:
    """High load, low capacity (Depleted/Burned Out)."""
    return CheckIn(stress=9, sleep_quality=5, energy=2, time_available_min=10)


@pytest.fixture
def default_constraints() -> Constraints:
    return Constraints()


@pytest.fixture
def dev_policy() -> EnvPolicy:
    return policy_for_mode("dev")


@pytest.fixture
def frozen_policy() -> EnvPolicy:
    return policy_for_mode("prod")


def _request(**overrides: Any) -> dict[str, Any]:
    """A valid wire request for build_today; keyword args replace top-level keys."""
    request: dict[str, Any] = {
        "userId": "user-1",
        "dateKey": "2026-10-19",
        "timezone": "America/New_York",
        "dayBoundaryHour": 4,
        "checkIn": {"stress": 3, "sleepQuality": 8, "energy": 8, "timeAvailableMin": 30},
        "baseline": {"constraints": {"equipment": {"none": True}}},
    }
    request.update(overrides)
    return request


@pytest.fixture
def make_reset():
    return _reset


@pytest.fixture
def make_movement():
    return _movement


@pytest.fixture
def make_nutrition():
    return _nutrition


@pytest.fixture
def make_index():
    return _index


@pytest.fixture
def make_request():
    return _request
