"""JSON file storage. Reloads on mtime change, rewrites the file on write."""

import base64
import json
import os

from keybroker.storage.base import Storage, StorageEntry, children


class JSONFileStorage(Storage):
    """File-backed storage holding every entry in one JSON document.

    Values are base64 encoded so arbitrary bytes survive the round trip.
    """

    def __init__(self, path: str):
        self._path = path
        self._entries: dict[str, bytes] = {}
        self._last_mtime: float = 0.0
        self._load()

    def _load(self) -> None:
        try:
            mtime = os.path.getmtime(self._path)
        except OSError:
            self._entries = {}
            self._last_mtime = 0.0
            return

        if mtime == self._last_mtime:
            return

        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)

        self._entries = {
            key: base64.b64decode(value) for key, value in data.get("entries", {}).items()
        }
        self._last_mtime = mtime

    def _flush(self) -> None:
        data = {
            "entries": {
                key: base64.b64encode(value).decode("ascii")
                for key, value in self._entries.items()
            }
        }
        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self._path)
        self._last_mtime = os.path.getmtime(self._path)

    async def get(self, key: str) -> StorageEntry | None:
        self._load()
        value = self._entries.get(key)
        if value is None:
            return None
        return StorageEntry(key=key, value=value)

    async def put(self, entry: StorageEntry) -> None:
        self._load()
        self._entries[entry.key] = entry.value
        self._flush()

    async def delete(self, key: str) -> None:
        self._load()
        if self._entries.pop(key, None) is not None:
            self._flush()

    async def list(self, prefix: str) -> list[str]:
        self._load()
        return children(self._entries.keys(), prefix)
