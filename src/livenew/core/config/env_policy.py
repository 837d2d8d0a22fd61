"""Environment policy passed explicitly into the engine.

The engine never reads the process environment itself. Callers build an
``EnvPolicy`` once (usually from ``Settings``) and hand it to the rule
pipeline, which uses ``rules_frozen`` to decide whether an unknown rule
name is dropped or rejected.
"""

from __future__ import annotations

from dataclasses import dataclass

from livenew.core.config.settings import Settings

DEV_LIKE_MODES = frozenset({"dev", "internal", "test"})
FROZEN_MODES = frozenset({"alpha", "prod"})


@dataclass(frozen=True)
class EnvPolicy:
    """Behavioural switches derived from the deployment mode."""

    env_mode: str
    rules_frozen: bool
    allow_verbose_errors: bool
    allow_dev_tools: bool

    @property
    def is_dev_like(self) -> bool:
        return self.env_mode in DEV_LIKE_MODES


def policy_for_mode(env_mode: str, rules_frozen: bool | None = None) -> EnvPolicy:
    """Build the policy for ``env_mode``.

    Unrecognized modes are treated as ``prod``: the strictest live
    behaviour, where unknown rules degrade instead of failing requests.
    """
    mode = (env_mode or "").strip().lower()
    if mode not in DEV_LIKE_MODES and mode not in FROZEN_MODES:
        mode = "prod"
    dev_like = mode in DEV_LIKE_MODES
    frozen = rules_frozen if rules_frozen is not None else mode in FROZEN_MODES
    return EnvPolicy(
        env_mode=mode,
        rules_frozen=frozen,
        allow_verbose_errors=dev_like,
        allow_dev_tools=dev_like,
    )


def policy_from_settings(settings: Settings) -> EnvPolicy:
    """Build the policy described by ``settings``."""
    return policy_for_mode(settings.env_mode, settings.rules_frozen)
