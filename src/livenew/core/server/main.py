"""LiveNew server entry point: ``python -m livenew.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from livenew.core.config.settings import Settings, get_settings
from livenew.core.server.app import create_app

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind(settings: Settings) -> None:
    """Refuse a network bind beyond loopback unless explicitly allowed.

    The stdio transport opens no socket and is always allowed.
    """
    if settings.livenew_transport == "stdio" or settings.livenew_allow_insecure_bind:
        return
    if not _is_loopback_host(settings.livenew_host):
        raise RuntimeError(
            f"Refusing to expose the rail engine on {settings.livenew_host}: the MCP "
            "surface has no auth layer. Set LIVENEW_ALLOW_INSECURE_BIND=true to override."
        )


def run() -> None:
    """Start the LiveNew MCP server on the configured transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.livenew_log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logger = logging.getLogger(__name__)
    check_bind(settings)

    mcp = create_app(settings_override=settings)
    if settings.livenew_transport == "stdio":
        logger.info("Starting LiveNew rail server on stdio (env %s)", settings.env_mode)
        mcp.run(transport="stdio")
        return

    logger.info(
        "Starting LiveNew rail server on %s:%d (env %s)",
        settings.livenew_host,
        settings.livenew_port,
        settings.env_mode,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.livenew_host,
        port=settings.livenew_port,
    )


if __name__ == "__main__":
    run()
