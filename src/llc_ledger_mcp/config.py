"""Configuration from environment variables.

All settings use the ``LLC_LEDGER_`` prefix and are read once per process
through :func:`get_settings`. The resolver and fetcher receive the settings
object in their constructors instead of reading the environment themselves.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .catalog import is_slot_id


logger = structlog.get_logger(__name__)


def _default_db_path() -> Path:
    return Path.home() / ".cache" / "llc-ledger-mcp" / "ledger.db"


class Settings(BaseSettings):
    """Runtime configuration for the provider client, resolver and store."""

    model_config = SettingsConfigDict(
        env_prefix="LLC_LEDGER_",
        extra="ignore",
    )

    api_base_url: str = Field(
        default="http://localhost:3000/api/db",
        description="Base URL of the bank data provider API",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer token sent to the provider, if any",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout in seconds",
    )
    transactions_limit: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Most recent transactions requested per account",
    )
    account_overrides: str | None = Field(
        default=None,
        description="JSON object mapping provider identity strings to slot ids",
    )
    db_path: Path = Field(
        default_factory=_default_db_path,
        description="SQLite file holding the persisted account store",
    )
    log_level: str = Field(default="INFO")

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def parse_account_overrides(raw: str | None) -> dict[str, str]:
    """Parse the operator override map.

    Malformed configuration is ignored with a warning so that the built-in
    mappings keep working.

    Args:
        raw: JSON text such as ``{"acct_123": "llcBank"}``, or None.

    Returns:
        Mapping of normalized identity string to slot id.
    """
    if raw is None or not raw.strip():
        return {}

    try:
        data: Any = json.loads(raw)
    except ValueError as e:
        logger.warning("account_overrides_invalid_json", error=str(e))
        return {}

    if not isinstance(data, dict):
        logger.warning("account_overrides_not_an_object", value_type=type(data).__name__)
        return {}

    overrides: dict[str, str] = {}
    for key, slot_id in data.items():
        identity = key.strip().lower() if isinstance(key, str) else ""
        if not identity or not is_slot_id(slot_id):
            logger.warning("account_override_dropped", identity=key, slot_id=slot_id)
            continue
        overrides[identity] = slot_id
    return overrides
