"""MCP tool for viewing the audit trail.

The trail holds only hashed inputs, rule names and timings, so it can be
returned as-is.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from livenew.core.audit.logger import AuditTrail

logger = logging.getLogger(__name__)


def register_audit_tools(mcp: FastMCP, audit: AuditTrail) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        tool_name: str | None = None,
        limit: int = 20,
    ) -> str:
        """View recent tool invocations recorded in the audit trail.

        Args:
            tool_name: Only show events for this tool.
            limit: Maximum events to return (default: 20).
        """
        events = audit.get_events(tool_name=tool_name, limit=limit)
        display_events = [
            {
                "timestamp": event["timestamp"],
                "tool_name": event["tool_name"],
                "status": event["status"],
                "applied_rules": event["applied_rules"],
                "duration_ms": event["duration_ms"],
                "error_type": event["error_type"],
            }
            for event in events
        ]
        return json.dumps({
            "total_events": audit.count_events(tool_name=tool_name),
            "recent_events": display_events,
        })

    logger.debug("Registered audit tools (ring capacity %d)", audit.capacity)
