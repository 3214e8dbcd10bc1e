"""Backend-wide configuration, stored under the ``config`` key."""

from keybroker.backend.errors import ValidationError
from keybroker.backend.models import BackendConfig
from keybroker.logging.audit import get_audit_logger
from keybroker.storage.base import Storage, StorageEntry

CONFIG_KEY = "config"


async def get_config(storage: Storage) -> BackendConfig | None:
    """Read the stored configuration, or None if none was written."""
    entry = await storage.get(CONFIG_KEY)
    if entry is None:
        return None
    data = entry.decode_json()
    return BackendConfig(url=data.get("url", ""), token=data.get("token", ""))


class ConfigStore:
    """Reads and writes the config singleton, invalidating the client cache."""

    def __init__(self, storage: Storage, cache):
        self._storage = storage
        self._cache = cache

    async def get(self) -> BackendConfig | None:
        return await get_config(self._storage)

    async def put(self, url: str | None = None, token: str | None = None) -> BackendConfig:
        """Create or update the configuration. Omitted fields keep their value."""
        config = await get_config(self._storage)
        created = config is None
        if config is None:
            config = BackendConfig()

        if url is not None:
            config.url = url.strip()
        if token is not None:
            config.token = token

        if not config.url:
            raise ValidationError("missing url in configuration")

        await self._storage.put(
            StorageEntry.from_json(CONFIG_KEY, {"url": config.url, "token": config.token})
        )
        await self._cache.invalidate()

        get_audit_logger().info(
            "Configuration written",
            extra={"audit_data": {"url": config.url, "created": created}},
        )
        return config

    async def delete(self) -> None:
        await self._storage.delete(CONFIG_KEY)
        await self._cache.invalidate()
        get_audit_logger().info("Configuration deleted")
