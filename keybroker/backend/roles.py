"""Role records, stored one per key under ``role/``."""

from keybroker.backend.errors import ValidationError
from keybroker.backend.models import RoleEntry
from keybroker.logging.audit import get_audit_logger
from keybroker.storage.base import Storage, StorageEntry

ROLE_PREFIX = "role/"


def validate_role(role: RoleEntry) -> None:
    """Reject a role before it is written."""
    if not role.name:
        raise ValidationError("missing role name")
    if "/" in role.name:
        raise ValidationError("role name must not contain '/'")
    if role.ttl < 0 or role.max_ttl < 0:
        raise ValidationError("ttl and max_ttl must not be negative")
    if role.max_ttl != 0 and role.ttl > role.max_ttl:
        raise ValidationError("ttl cannot be greater than max_ttl")


class RoleStore:
    """CRUD over role records. Listing follows storage enumeration order."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def get(self, name: str) -> RoleEntry | None:
        if not name:
            raise ValidationError("missing role name")
        entry = await self._storage.get(ROLE_PREFIX + name)
        if entry is None:
            return None
        return RoleEntry.from_storage(entry.decode_json())

    async def put(self, name: str, role: RoleEntry) -> None:
        role.name = name
        validate_role(role)
        await self._storage.put(StorageEntry.from_json(ROLE_PREFIX + name, role.to_storage()))

    async def write(
        self,
        name: str,
        url: str | None = None,
        ttl: int | None = None,
        max_ttl: int | None = None,
        token: str | None = None,
    ) -> RoleEntry:
        """Create a role or merge the given fields into the stored one."""
        role = await self.get(name)
        created = role is None
        if role is None:
            role = RoleEntry(name=name)

        if url is not None:
            role.url = url.strip()
        if ttl is not None:
            role.ttl = ttl
        if max_ttl is not None:
            role.max_ttl = max_ttl
        if token is not None:
            role.token = token

        await self.put(name, role)
        get_audit_logger().info(
            "Role written",
            extra={"audit_data": {
                "role": name,
                "created": created,
                "ttl": role.ttl,
                "max_ttl": role.max_ttl,
                "url_override": bool(role.url),
            }},
        )
        return role

    async def delete(self, name: str) -> None:
        if not name:
            raise ValidationError("missing role name")
        await self._storage.delete(ROLE_PREFIX + name)
        get_audit_logger().info("Role deleted", extra={"audit_data": {"role": name}})

    async def list(self) -> list[str]:
        return await self._storage.list(ROLE_PREFIX)
