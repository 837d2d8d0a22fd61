"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings

EnvMode = Literal["dev", "internal", "alpha", "prod", "test"]


class Settings(BaseSettings):
    """LiveNew rail engine configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Deployment mode. alpha/prod freeze the rule-name contract.
    env_mode: EnvMode = "internal"
    # Explicit override for the rules-frozen policy (unset = derive from env_mode).
    rules_frozen: bool | None = None

    # Server
    # Loopback by default; the MCP surface has no auth layer.
    livenew_transport: Literal["streamable-http", "stdio"] = "streamable-http"
    livenew_host: str = "127.0.0.1"
    livenew_port: int = 8011
    livenew_log_level: str = "info"
    livenew_allow_insecure_bind: bool = False

    # Content library directory (empty = bundled library)
    library_dir: str = ""

    # Optional YAML file with parameter overrides
    parameters_path: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
