from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for callers embedding the engine.

    The engines themselves take no configuration; these values shape logging,
    the caller-owned decision cache and audit-trail redaction.
    """

    model_config = SettingsConfigDict(env_prefix="LUME_", env_file=".env", extra="ignore")

    environment: str = "dev"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Decision history cache
    decision_cache_ttl_seconds: float = 30.0

    # Audit trail
    audit_buffer_size: int = 1000
    audit_allow_payload_keys: list[str] | None = None
    audit_remove_customer_id: bool = False
    audit_hash_customer_id: bool = True
    audit_hash_salt: str | None = None
    audit_truncate_payload_strings: int = 256
    audit_max_list_items: int = 50


def get_settings() -> Settings:
    return Settings()
