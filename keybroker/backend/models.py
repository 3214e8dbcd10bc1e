"""Records handled by the credential backend."""

from dataclasses import asdict, dataclass, field
from typing import Any

DEFAULT_KEY_DESCRIPTION = "Vault Managed Balena Token"


@dataclass
class BackendConfig:
    url: str = ""
    token: str = field(default="", repr=False)  # backend-wide master credential, write-only

    def to_response_data(self) -> dict[str, Any]:
        return {"url": self.url}


@dataclass
class RoleEntry:
    name: str
    url: str = ""  # blank = use the config URL
    ttl: int = 0  # seconds
    max_ttl: int = 0  # seconds, 0 = system default
    token: str = field(default="", repr=False)  # role-scoped master credential, write-only

    def to_response_data(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "ttl": self.ttl,
            "max_ttl": self.max_ttl,
        }
        if self.url:
            data["url"] = self.url
        return data

    def to_storage(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_storage(cls, data: dict[str, Any]) -> "RoleEntry":
        return cls(
            name=data["name"],
            url=data.get("url", ""),
            ttl=int(data.get("ttl", 0)),
            max_ttl=int(data.get("max_ttl", 0)),
            token=data.get("token", ""),
        )


@dataclass
class LeaseWindow:
    """TTL bounds to apply to a lease. None leaves the current value."""

    ttl: int | None = None
    max_ttl: int | None = None


@dataclass
class SecretResponse:
    """An issued secret as handed to the host's lease manager.

    ``data`` goes to the caller; ``internal_data`` stays with the lease
    and comes back on revoke and renew.
    """

    data: dict[str, Any]
    internal_data: dict[str, Any]
    lease: LeaseWindow = field(default_factory=LeaseWindow)
    renewable: bool = True


@dataclass
class ApiToken:
    token_id: str
    token: str
    key_name: str
    key_desc: str
    role: str
    ttl: int
    max_ttl: int

    def __repr__(self) -> str:
        return (
            f"ApiToken(token_id={self.token_id!r}, key_name={self.key_name!r}, "
            f"role={self.role!r}, ttl={self.ttl}, max_ttl={self.max_ttl})"
        )

    def to_secret_response(self) -> SecretResponse:
        return SecretResponse(
            data={
                "token": self.token,
                "token_id": self.token_id,
                "role": self.role,
                "key_name": self.key_name,
                "key_desc": self.key_desc,
                "ttl": self.ttl,
            },
            internal_data={
                "token_id": self.token_id,
                "key_name": self.key_name,
                "key_desc": self.key_desc,
                "role": self.role,
                "ttl": self.ttl,
                "max_ttl": self.max_ttl,
            },
            lease=LeaseWindow(
                ttl=self.ttl if self.ttl > 0 else None,
                max_ttl=self.max_ttl if self.max_ttl > 0 else None,
            ),
        )
