"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) - single instance per process
    - Endpoints and collection id are passed through to the adapters untransformed

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - network="ic" swaps the local replica defaults for the public hosts
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOCAL_LEDGER_URL = "http://localhost:4943"
LOCAL_IDENTITY_URL = "http://localhost:4943/identity"
PUBLIC_LEDGER_URL = "https://ic0.app"
PUBLIC_IDENTITY_URL = "https://identity.ic0.app"


class Settings(BaseSettings):
    """Client settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Remote ledger
    ledger_url: str = LOCAL_LEDGER_URL
    collection_id: str = "rdmx6-jaaaa-aaaah-qcaiq-cai"
    network: str = "local"

    # Identity provider
    identity_url: str = LOCAL_IDENTITY_URL
    identity_client_id: str = "realtoken-client"
    identity_secret: str = ""

    # Transport
    request_timeout_seconds: float = 30.0
    read_max_retries: int = 3
    retry_base_delay_ms: int = 500
    retry_max_delay_ms: int = 8_000

    # Notifications
    notification_display_seconds: float = 3.0

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("network", mode="before")
    @classmethod
    def normalise_network(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in ("local", "ic"):
                raise ValueError(f"network must be 'local' or 'ic', got {v!r}")
        return v

    @field_validator("ledger_url", "identity_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def use_public_hosts_on_ic(self) -> "Settings":
        if self.network == "ic":
            if self.ledger_url == LOCAL_LEDGER_URL:
                self.ledger_url = PUBLIC_LEDGER_URL
            if self.identity_url == LOCAL_IDENTITY_URL:
                self.identity_url = PUBLIC_IDENTITY_URL
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
