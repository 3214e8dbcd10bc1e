"""Single-slot cache of the authenticated balena client."""

import asyncio

import httpx

from keybroker.backend.config_store import get_config
from keybroker.backend.errors import ConfigurationError
from keybroker.backend.models import BackendConfig
from keybroker.config.settings import Settings
from keybroker.storage.base import Storage
from keybroker.upstream.client import BalenaClient


class ClientCache:
    """Holds at most one BalenaClient for a backend instance.

    Every lookup re-reads the stored configuration under the lock. The
    cached client is only reused when it is bound to the same URL and
    credential that the current configuration resolves to.
    """

    def __init__(self, storage: Storage, settings: Settings, http: httpx.AsyncClient | None = None):
        self._storage = storage
        self._settings = settings
        self._http = http
        self._lock = asyncio.Lock()
        self._client: BalenaClient | None = None
        self._credential = ""

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            timeout = self._settings.upstream_timeout
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)))
        return self._http

    async def get_client(self, master_credential: str = "", url: str = "") -> BalenaClient:
        """Return a client for url and master_credential.

        Blank arguments fall back to the stored config, then to the
        broker-wide master token from settings.
        """
        async with self._lock:
            config = await get_config(self._storage)
            if config is None:
                config = BackendConfig()

            resolved_url = url or config.url
            if not resolved_url:
                raise ConfigurationError("client URL was not defined; write the config endpoint first")

            credential = master_credential or config.token or self._settings.upstream_master_token
            if not credential:
                raise ConfigurationError("no master credential configured for the balena API")

            if (
                self._client is not None
                and self._client.base_url == resolved_url
                and self._credential == credential
            ):
                return self._client

            self._client = BalenaClient(resolved_url, credential, self._get_http())
            self._credential = credential
            return self._client

    async def invalidate(self) -> None:
        """Drop the cached client; the next lookup rebuilds it."""
        async with self._lock:
            self._client = None
            self._credential = ""

    async def close(self) -> None:
        await self.invalidate()
        if self._http and not self._http.is_closed:
            await self._http.aclose()
        self._http = None
