"""Revoke and renew callbacks invoked by the host's lease manager."""

from enum import Enum
from typing import Any

from keybroker.backend.client_cache import ClientCache
from keybroker.backend.errors import MalformedLeaseError, UpstreamError
from keybroker.backend.models import LeaseWindow
from keybroker.backend.roles import RoleStore
from keybroker.config.settings import Settings
from keybroker.logging.audit import RequestTimer, get_audit_logger


class LeaseOperation(str, Enum):
    REVOKE = "revoke"
    RENEW = "renew"


def _require_str(internal_data: dict[str, Any], field: str) -> str:
    value = internal_data.get(field)
    if not isinstance(value, str) or not value:
        raise MalformedLeaseError(f"secret is missing {field} internal data")
    return value


def _require_seconds(internal_data: dict[str, Any], field: str) -> int:
    value = internal_data.get(field)
    # bool is an int subclass; a lease never stores one
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedLeaseError(f"secret is missing {field} internal data")
    return value


class LeaseHandlers:
    """One handler per LeaseOperation, dispatched through handle()."""

    def __init__(self, roles: RoleStore, cache: ClientCache, settings: Settings):
        self._roles = roles
        self._cache = cache
        self._settings = settings

    async def handle(self, operation: LeaseOperation, internal_data: dict[str, Any]) -> LeaseWindow | None:
        if not isinstance(internal_data, dict):
            raise MalformedLeaseError("secret internal data must be an object")
        if operation is LeaseOperation.REVOKE:
            await self.revoke(internal_data)
            return None
        return await self.renew(internal_data)

    async def revoke(self, internal_data: dict[str, Any]) -> None:
        """Delete the upstream key named in the lease.

        A key that no longer exists upstream counts as revoked.
        """
        key_name = _require_str(internal_data, "key_name")
        logger = get_audit_logger()

        # Role-scoped credentials win; a deleted role falls back to config
        master_credential, url = "", ""
        role_name = internal_data.get("role")
        if isinstance(role_name, str) and role_name:
            role = await self._roles.get(role_name)
            if role is not None:
                master_credential, url = role.token, role.url

        client = await self._cache.get_client(master_credential=master_credential, url=url)

        with RequestTimer() as timer:
            key_id = await client.find_api_key_id(key_name)
            if key_id is None:
                logger.info(
                    "Key already absent upstream",
                    extra={"audit_data": {"key_name": key_name, "role": role_name}},
                )
                return

            try:
                await client.delete_api_key(key_id)
            except UpstreamError as e:
                logger.warning(
                    "Upstream key delete failed",
                    extra={"audit_data": {
                        "key_name": key_name,
                        "key_id": key_id,
                        "role": role_name,
                        "upstream_status": e.status_code,
                        "strict": self._settings.revoke_strict,
                    }},
                )
                if self._settings.revoke_strict:
                    raise
                return

        logger.info(
            "Key revoked",
            extra={"audit_data": {
                "key_name": key_name,
                "key_id": key_id,
                "role": role_name,
                "latency_ms": timer.elapsed_ms,
            }},
        )

    async def renew(self, internal_data: dict[str, Any]) -> LeaseWindow:
        """Recompute the lease window from the TTLs snapshotted at issuance.

        Purely local: the upstream expiry set at issuance still bounds the key.
        """
        ttl = _require_seconds(internal_data, "ttl")
        max_ttl = _require_seconds(internal_data, "max_ttl")

        window = LeaseWindow(
            ttl=ttl if ttl > 0 else None,
            max_ttl=max_ttl if max_ttl > 0 else None,
        )
        get_audit_logger().info(
            "Lease renewed",
            extra={"audit_data": {
                "key_name": internal_data.get("key_name"),
                "role": internal_data.get("role"),
                "ttl": ttl,
                "max_ttl": max_ttl,
            }},
        )
        return window
