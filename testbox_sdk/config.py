"""SDK settings loaded once at startup and passed by reference."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWKS_URL = "https://assets.testbox.com/.well-known/jwks.json"
DEFAULT_KEY_DOMAIN = "https://trials.testbox.com"
KEYMAP_PATH = "/.well-known/keys"


class Framework(str, Enum):
    """Host framework used to shape synchronous webhook responses."""

    STARLETTE = "starlette"
    RAW = "raw"


class KeySource(str, Enum):
    """Where token verification keys are published."""

    JWKS = "jwks"
    KEYMAP = "keymap"


class Settings(BaseSettings):
    """Partner integration settings, overridable through TBX_* variables."""

    model_config = SettingsConfigDict(env_prefix="TBX_", extra="ignore")

    product_id: str = Field(min_length=1, description="Product slug used as the JWT audience.")
    framework: Framework = Framework.STARLETTE
    key_source: KeySource = KeySource.JWKS
    jwks_url: str = DEFAULT_JWKS_URL
    key_domain: str = DEFAULT_KEY_DOMAIN
    jwks_ttl_seconds: int = Field(default=300, ge=1)
    http_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("jwks_url", "key_domain")
    @classmethod
    def validate_https_url(cls, value: str) -> str:
        """Ensure key material is fetched over HTTP(S)."""
        if not value.startswith(("https://", "http://")):
            raise ValueError("Key URLs must start with 'https://' or 'http://'.")
        return value.rstrip("/")

    @property
    def keymap_url(self) -> str:
        """Return the keyed PEM map location for the configured domain."""
        return f"{self.key_domain}{KEYMAP_PATH}"
