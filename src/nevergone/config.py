"""Settings for the NeverGone service and client.

Created: 2026-10-17

Values come from ``~/.nevergone/config.json`` (directory overridable with
``NEVERGONE_CONFIG_DIR``) and ``NEVERGONE_*`` environment variables, with the
environment taking precedence.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_WELCOME_MESSAGE = "Hi! I'm your NeverGone assistant. How can I help you today?"


def get_config_dir() -> Path:
    """Return the config directory, creating it if needed."""
    override = os.environ.get("NEVERGONE_CONFIG_DIR")
    path = Path(override) if override else Path.home() / ".nevergone"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="NEVERGONE_", extra="ignore")

    # Server
    web_host: str = "127.0.0.1"
    web_port: int = 8888
    cors_allowed_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Auth
    auth_secret: str = ""
    token_ttl_hours: int = 24

    # Token generator
    generator: str = "stub"  # "stub" | "ollama"
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    stub_min_delay: float = 0.05
    stub_max_delay: float = 0.15
    generator_idle_timeout: float = 60.0

    # Storage
    store_backend: str = "memory"  # "memory" | "file"
    data_dir: str = ""

    # Client
    server_url: str = "http://127.0.0.1:8888"
    client_read_timeout: float = 60.0
    welcome_message: str = DEFAULT_WELCOME_MESSAGE

    @classmethod
    def load(cls) -> Settings:
        """Load settings from the config file, then apply env overrides.

        A missing ``auth_secret`` is generated and written back so that issued
        tokens survive restarts.
        """
        path = get_config_path()
        file_values: dict = {}
        if path.exists():
            try:
                file_values = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable config file %s: %s", path, e)
                file_values = {}

        # Env vars win over the file: only pass file keys the env doesn't set
        init_values = {
            k: v
            for k, v in file_values.items()
            if k in cls.model_fields and f"NEVERGONE_{k.upper()}" not in os.environ
        }
        settings = cls(**init_values)

        if not settings.auth_secret:
            settings.auth_secret = secrets.token_urlsafe(32)
            try:
                settings.save()
            except OSError as e:
                logger.warning("Could not persist generated auth secret: %s", e)

        return settings

    def save(self) -> None:
        """Write settings to the config file atomically."""
        path = get_config_path()
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self.model_dump(), indent=2), encoding="utf-8")
        temp_path.replace(path)
        try:
            path.chmod(0o600)
        except OSError:
            pass

    def resolved_data_dir(self) -> Path:
        path = Path(self.data_dir) if self.data_dir else get_config_dir() / "data"
        path.mkdir(parents=True, exist_ok=True)
        return path


@lru_cache
def get_settings() -> Settings:
    """Return the process settings (cached; call ``get_settings.cache_clear()`` to reload)."""
    return Settings.load()
