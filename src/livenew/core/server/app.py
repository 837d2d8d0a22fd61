"""LiveNew rail MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for `fastmcp run src/livenew/core/server/app.py:mcp`
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from livenew.core.audit.logger import AuditTrail
from livenew.core.config.env_policy import policy_from_settings
from livenew.core.config.settings import Settings, get_settings
from livenew.domains.rail.content.index import LibraryIndex, build_library_index
from livenew.domains.rail.content.loader import load_library_directory
from livenew.domains.rail.domain_logic.parameters import Parameters, load_parameters_file
from livenew.domains.rail.domain_logic.rules import RULES_VERSION
from livenew.domains.rail.tools.audit_tools import register_audit_tools
from livenew.domains.rail.tools.day_contract_tools import register_day_contract_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "LiveNew Daily Rail"
SERVER_VERSION = "0.1.0"


def create_app(
    *,
    library_override: LibraryIndex | None = None,
    parameters_override: Parameters | None = None,
    settings_override: Settings | None = None,
    audit_override: AuditTrail | None = None,
) -> FastMCP:
    """Create and configure the LiveNew rail MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Loads and indexes the content library
    3. Loads engine parameters and the environment policy
    4. Creates the in-memory audit trail
    5. Registers all tools
    """
    settings = settings_override or get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "LiveNew daily rail engine. Turns a short check-in into one reset, "
            "an optional movement and one nutrition tip for today, with stable "
            "choices across re-submissions and quick signals that only make "
            "the day easier."
        ),
    )

    # --- Content library ---
    if library_override is not None:
        index = library_override
    else:
        index = build_library_index(load_library_directory(settings.library_dir or None))

    # --- Parameters and policy ---
    params = parameters_override or load_parameters_file(settings.parameters_path or None)
    policy = policy_from_settings(settings)
    logger.info(
        "Rail engine ready: library %s, rules %s, env %s (rules frozen: %s)",
        index.version, RULES_VERSION, policy.env_mode, policy.rules_frozen,
    )

    audit = audit_override or AuditTrail()

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "env_mode": policy.env_mode,
            "library_version": index.version,
            "rules_version": RULES_VERSION,
            "items_loaded": {
                "reset": len(index.items("reset")),
                "movement": len(index.items("movement")),
                "nutrition": len(index.items("nutrition")),
            },
            "audit_events": audit.count_events(),
        }

    register_day_contract_tools(server, index, params, policy, audit)
    logger.info("Rail tools registered")

    if policy.allow_dev_tools:
        register_audit_tools(server, audit)
        logger.info("Audit tools registered")

    return server


# Module-level instance for `fastmcp run .../app.py:mcp` discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
