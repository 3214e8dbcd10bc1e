"""Token issuance: TTL resolution and upstream key creation.

An issued key is never stored by the broker. Everything needed to revoke
or renew it later travels in the secret's internal data.
"""

import uuid
from datetime import datetime, timedelta, timezone

from keybroker.backend.client_cache import ClientCache
from keybroker.backend.errors import UpstreamError
from keybroker.backend.models import DEFAULT_KEY_DESCRIPTION, ApiToken, RoleEntry
from keybroker.config.settings import Settings
from keybroker.logging.audit import RequestTimer, get_audit_logger

# Added to the upstream expiry date. The balena API evaluates expiry in its
# own clock and timezone, so the key must outlive the local lease.
EXPIRY_MARGIN = timedelta(hours=2)


def resolve_ttl(role: RoleEntry, ttl_override: int, settings: Settings) -> tuple[int, int]:
    """Return the effective (ttl, max_ttl) for an issuance.

    A non-zero override wins over the role TTL, zero falls through to the
    system default. The result is silently capped at the role's max_ttl,
    or the system maximum when the role leaves it at zero. The returned
    max_ttl is the role's own value, as snapshotted into the lease.
    """
    ttl = ttl_override or role.ttl or settings.default_lease_ttl
    bound = role.max_ttl or settings.max_lease_ttl
    if bound > 0 and ttl > bound:
        ttl = bound
    return ttl, role.max_ttl


class TokenIssuer:
    """Mints balena API keys for roles."""

    def __init__(self, cache: ClientCache, settings: Settings):
        self._cache = cache
        self._settings = settings

    async def issue(
        self,
        role: RoleEntry,
        key_name: str = "",
        key_desc: str = "",
        ttl: int = 0,
    ) -> ApiToken:
        """Create one upstream key for role. No retry on failure."""
        if ttl < 0:
            ttl = 0
        effective_ttl, max_ttl = resolve_ttl(role, ttl, self._settings)

        client = await self._cache.get_client(master_credential=role.token, url=role.url)

        token_id = str(uuid.uuid4())
        key_name = key_name or token_id
        key_desc = key_desc or DEFAULT_KEY_DESCRIPTION
        expiry = datetime.now(timezone.utc) + timedelta(seconds=effective_ttl) + EXPIRY_MARGIN

        logger = get_audit_logger()
        with RequestTimer() as timer:
            try:
                value = await client.create_api_key(key_name, key_desc, expiry)
            except UpstreamError as e:
                logger.warning(
                    "Key creation failed",
                    extra={"audit_data": {
                        "role": role.name,
                        "key_name": key_name,
                        "upstream_status": e.status_code,
                        "error": e.message,
                    }},
                )
                raise

        logger.info(
            "Key issued",
            extra={"audit_data": {
                "role": role.name,
                "token_id": token_id,
                "key_name": key_name,
                "ttl": effective_ttl,
                "max_ttl": max_ttl,
                "expiry_date": expiry.isoformat(),
                "latency_ms": timer.elapsed_ms,
            }},
        )

        return ApiToken(
            token_id=token_id,
            token=value,
            key_name=key_name,
            key_desc=key_desc,
            role=role.name,
            ttl=effective_ttl,
            max_ttl=max_ttl,
        )
