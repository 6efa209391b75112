"""Server configuration loaded from environment variables.

Every field maps to a ``SOCIAL_MCP_``-prefixed variable (``port`` reads
``SOCIAL_MCP_PORT``). A ``.env`` file in the working directory is read too.
"""

from __future__ import annotations

import secrets

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed server settings."""

    model_config = SettingsConfigDict(
        env_prefix="SOCIAL_MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # -- Server --
    host: str = "127.0.0.1"
    port: int = 3001
    # Public base URL; defaults to http://{host}:{port} when empty.
    server_url: str = ""
    log_level: str = "info"
    allowed_origins: list[str] = ["*"]

    # -- Lifetimes (seconds) --
    code_ttl: int = 600
    access_token_ttl: int = 3600
    pending_ttl: int = 600
    keepalive_interval: float = 30.0
    sweep_interval: float = 60.0

    # -- Identity collaborator --
    # Signs demo login assertions. Random per process unless configured.
    identity_secret: str = Field(default_factory=lambda: secrets.token_hex(32))
    demo_user_id: str = "demo-user"
    demo_user_name: str = "Demo User"
    demo_user_email: str | None = "demo@example.com"
    demo_user_picture: str | None = None

    @property
    def base_url(self) -> str:
        return (self.server_url or f"http://{self.host}:{self.port}").rstrip("/")
