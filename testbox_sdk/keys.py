"""Verification key providers for TestBox-signed tokens."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Protocol

import structlog
from cachetools import TTLCache

from testbox_sdk.client import ServiceClient
from testbox_sdk.config import KeySource, Settings
from testbox_sdk.exceptions import ServiceResponseError, ServiceUnavailableError
from testbox_sdk.types import JWKS

VerificationKey = dict[str, str] | str

logger = structlog.get_logger(__name__)


class KeyProvider(Protocol):
    """Resolve a token's key id to verification key material."""

    async def resolve_key(self, kid: str) -> VerificationKey | None:
        """Return the key for ``kid`` or None when it cannot be resolved."""
        ...


def _select_key(jwks: JWKS, kid: str) -> dict[str, str] | None:
    """Select JWK by kid value."""
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


class JWKSKeyProvider:
    """Resolve keys from a remote JWKS document with TTL-based reuse.

    An unknown kid triggers one forced refresh so rotated keys are picked up
    without waiting for the TTL, rate limited by ``refresh_cooldown_seconds``.
    """

    _CACHE_KEY = "jwks"

    def __init__(
        self,
        client: ServiceClient,
        jwks_url: str,
        ttl_seconds: int = 300,
        refresh_cooldown_seconds: float = 30.0,
        now: Callable[[], float] | None = None,
    ) -> None:
        self._client = client
        self._jwks_url = jwks_url
        self._now = now or time.monotonic
        self._cache: TTLCache[str, JWKS] = TTLCache(maxsize=1, ttl=ttl_seconds, timer=self._now)
        self._refresh_cooldown_seconds = refresh_cooldown_seconds
        self._last_fetch_at: float | None = None
        self._lock = asyncio.Lock()

    async def resolve_key(self, kid: str) -> VerificationKey | None:
        """Return the JWK matching ``kid``, refreshing once on a miss."""
        jwks = await self._get_jwks()
        key = _select_key(jwks, kid) if jwks is not None else None
        if key is not None or not self._may_refresh():
            return key

        jwks = await self._get_jwks(force_refresh=True)
        return _select_key(jwks, kid) if jwks is not None else None

    def _may_refresh(self) -> bool:
        if self._last_fetch_at is None:
            return True
        return self._now() - self._last_fetch_at >= self._refresh_cooldown_seconds

    async def _get_jwks(self, force_refresh: bool = False) -> JWKS | None:
        """Return cached JWKS or fetch a fresh copy when cache is stale."""
        cached = None if force_refresh else self._cache.get(self._CACHE_KEY)
        if cached is not None:
            return cached

        async with self._lock:
            cached = None if force_refresh else self._cache.get(self._CACHE_KEY)
            if cached is not None:
                return cached
            try:
                jwks = await self._client.fetch_jwks(self._jwks_url)
            except (ServiceUnavailableError, ServiceResponseError) as exc:
                logger.warning("testbox_keys_fetch_failed", source="jwks", error=str(exc))
                return None
            finally:
                self._last_fetch_at = self._now()
            self._cache[self._CACHE_KEY] = jwks
            logger.info("testbox_keys_fetched", source="jwks", key_count=len(jwks["keys"]))
            return jwks


class KeymapKeyProvider:
    """Resolve keys from a ``kid -> PEM`` map fetched once per provider.

    The map is kept until :meth:`reload` is called; there is no TTL.
    """

    def __init__(self, client: ServiceClient, keymap_url: str) -> None:
        self._client = client
        self._keymap_url = keymap_url
        self._keys: dict[str, str] | None = None
        self._lock = asyncio.Lock()

    async def resolve_key(self, kid: str) -> VerificationKey | None:
        """Return the PEM key for ``kid`` or None."""
        keys = self._keys
        if keys is None:
            try:
                keys = await self._load_once()
            except (ServiceUnavailableError, ServiceResponseError) as exc:
                logger.warning("testbox_keys_fetch_failed", source="keymap", error=str(exc))
                return None
        return keys.get(kid)

    async def reload(self) -> dict[str, str]:
        """Fetch the key map again and replace the retained copy."""
        keys = await self._client.fetch_keymap(self._keymap_url)
        self._keys = keys
        logger.info("testbox_keys_fetched", source="keymap", key_count=len(keys))
        return keys

    async def _load_once(self) -> dict[str, str]:
        async with self._lock:
            if self._keys is not None:
                return self._keys
            return await self.reload()


def build_key_provider(settings: Settings, client: ServiceClient) -> KeyProvider:
    """Build the key provider selected by settings."""
    if settings.key_source is KeySource.KEYMAP:
        return KeymapKeyProvider(client=client, keymap_url=settings.keymap_url)
    return JWKSKeyProvider(
        client=client,
        jwks_url=settings.jwks_url,
        ttl_seconds=settings.jwks_ttl_seconds,
    )
