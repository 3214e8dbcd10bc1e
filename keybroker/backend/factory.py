"""Credential backend wiring and the process-wide instance."""

from typing import Any

import httpx

from keybroker.backend.client_cache import ClientCache
from keybroker.backend.config_store import ConfigStore
from keybroker.backend.errors import NotFoundError
from keybroker.backend.leases import LeaseHandlers, LeaseOperation
from keybroker.backend.models import LeaseWindow, SecretResponse
from keybroker.backend.roles import RoleStore
from keybroker.backend.tokens import TokenIssuer
from keybroker.config.settings import Settings, get_settings
from keybroker.storage.base import Storage
from keybroker.storage.factory import get_storage


class CredentialBackend:
    """One mounted backend: its storage, client cache and handlers."""

    def __init__(self, storage: Storage, settings: Settings, http: httpx.AsyncClient | None = None):
        self.storage = storage
        self.settings = settings
        self.cache = ClientCache(storage, settings, http=http)
        self.config = ConfigStore(storage, self.cache)
        self.roles = RoleStore(storage)
        self.issuer = TokenIssuer(self.cache, settings)
        self.leases = LeaseHandlers(self.roles, self.cache, settings)

    async def read_creds(
        self,
        role_name: str,
        key_name: str = "",
        key_desc: str = "",
        ttl: int = 0,
    ) -> SecretResponse:
        """Issue a fresh key for role_name, packaged with its lease."""
        role = await self.roles.get(role_name)
        if role is None:
            raise NotFoundError(f"role not found: {role_name}")
        token = await self.issuer.issue(role, key_name=key_name, key_desc=key_desc, ttl=ttl)
        return token.to_secret_response()

    async def revoke(self, internal_data: dict[str, Any]) -> None:
        await self.leases.handle(LeaseOperation.REVOKE, internal_data)

    async def renew(self, internal_data: dict[str, Any]) -> LeaseWindow:
        return await self.leases.handle(LeaseOperation.RENEW, internal_data)

    async def close(self) -> None:
        await self.cache.close()


_backend: CredentialBackend | None = None


def get_backend() -> CredentialBackend:
    """Get the backend singleton for this process."""
    global _backend
    if _backend is None:
        _backend = CredentialBackend(get_storage(), get_settings())
    return _backend


async def close_backend() -> None:
    """Gracefully close the backend's upstream connections on shutdown."""
    global _backend
    if _backend is not None:
        await _backend.close()
        _backend = None
