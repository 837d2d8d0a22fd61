"""Audit trail: PHI-free record of every tool invocation.

Check-in values are health-adjacent, so they never reach the trail:

* ``tool_input_hash`` is the SHA-256 of the canonical JSON input;
* ``applied_rules`` and ``contract_hash`` are taken from the built contract;
* nothing else from the request is stored.

Events live in a bounded in-memory ring (the engine has no persistence)
and are mirrored to the ``livenew.audit`` logger so a deployment can ship
them wherever its log handlers point.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from livenew.core.hashing.canonical import hash_input

audit_log = logging.getLogger("livenew.audit")

DEFAULT_CAPACITY = 1000


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation'
    tool_name: str = ""
    tool_input_hash: str = ""
    contract_hash: str | None = None     # meta.inputHash of a built contract
    applied_rules: list[str] = field(default_factory=list)
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = ""
    timestamp: str = ""


class AuditTrail:
    """Bounded, thread-safe ring of audit events.

    Usage::

        audit = AuditTrail()
        audit.log_tool_call(
            tool_name="build_today",
            tool_input={"userId": "u1", "dateKey": "2026-10-19"},
            applied_rules=["busy_day"],
        )
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._events: deque[AuditEvent] = deque(maxlen=max(1, capacity))
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._events.maxlen or 0

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Store ``event`` and return its id."""
        event.id = event.id or str(uuid.uuid4())
        event.timestamp = event.timestamp or datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._events.append(event)
        audit_log.info(
            "%s tool=%s status=%s input=%s rules=%s duration_ms=%s",
            event.action,
            event.tool_name,
            event.status,
            event.tool_input_hash[:12],
            ",".join(event.applied_rules),
            event.duration_ms,
        )
        return event.id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        contract_hash: str | None = None,
        applied_rules: list[str] | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Convenience wrapper for logging a tool invocation.

        Args:
            tool_name: Name of the MCP tool.
            tool_input: Tool input data (hashed, never stored raw).
            contract_hash: ``meta.inputHash`` of the contract produced, if any.
            applied_rules: Rule names the engine applied.
            duration_ms: Tool execution duration in milliseconds.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
            metadata: Additional non-PHI metadata.
        """
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=hash_input(tool_input) if tool_input else "",
            contract_hash=contract_hash,
            applied_rules=list(applied_rules or []),
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        tool_name: str | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Recent events as dicts, newest first."""
        with self._lock:
            events = list(self._events)
        matched = [
            asdict(e) for e in reversed(events)
            if (tool_name is None or e.tool_name == tool_name)
            and (status is None or e.status == status)
        ]
        return matched[:max(0, limit)]

    def count_events(self, *, tool_name: str | None = None) -> int:
        with self._lock:
            if tool_name is None:
                return len(self._events)
            return sum(1 for e in self._events if e.tool_name == tool_name)
