"""In-process storage, used by tests and single-process deployments."""

from keybroker.storage.base import Storage, StorageEntry, children


class InMemoryStorage(Storage):
    """Dict-backed storage. Listing follows insertion order."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    async def get(self, key: str) -> StorageEntry | None:
        value = self._data.get(key)
        if value is None:
            return None
        return StorageEntry(key=key, value=value)

    async def put(self, entry: StorageEntry) -> None:
        self._data[entry.key] = entry.value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self, prefix: str) -> list[str]:
        return children(self._data.keys(), prefix)
