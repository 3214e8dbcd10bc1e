"""Storage abstraction for broker records.

Values are opaque bytes; config and role records are JSON encoded via
StorageEntry helpers. Keys in use: ``config`` and ``role/<name>``.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class StorageEntry:
    key: str
    value: bytes

    @classmethod
    def from_json(cls, key: str, obj: Any) -> "StorageEntry":
        return cls(key=key, value=json.dumps(obj, separators=(",", ":")).encode("utf-8"))

    def decode_json(self) -> Any:
        return json.loads(self.value)


class Storage(ABC):
    """Key-value store with per-key atomicity and no cross-key transactions."""

    @abstractmethod
    async def get(self, key: str) -> StorageEntry | None:
        """Return the entry at key, or None if nothing is stored there."""
        ...

    @abstractmethod
    async def put(self, entry: StorageEntry) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        ...

    @abstractmethod
    async def list(self, prefix: str) -> list[str]:
        """List direct children under prefix, with the prefix stripped.

        Nested keys are returned once as ``child/``.
        """
        ...


def children(keys, prefix: str) -> list[str]:
    """Collapse full keys into the direct children of prefix, in order."""
    seen: list[str] = []
    for key in keys:
        if not key.startswith(prefix):
            continue
        rest = key[len(prefix):]
        if "/" in rest:
            rest = rest.split("/", 1)[0] + "/"
        if rest and rest not in seen:
            seen.append(rest)
    return seen
