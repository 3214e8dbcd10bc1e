"""Tests for keybroker/backend/roles.py: role records."""

import pytest

from keybroker.backend.errors import ValidationError
from keybroker.backend.models import RoleEntry
from keybroker.backend.roles import validate_role


class TestValidateRole:

    def test_ttl_within_max(self):
        validate_role(RoleEntry(name="r", ttl=60, max_ttl=300))

    def test_zero_max_means_unbounded(self):
        validate_role(RoleEntry(name="r", ttl=999999, max_ttl=0))

    def test_ttl_greater_than_max_rejected(self):
        with pytest.raises(ValidationError, match="ttl cannot be greater than max_ttl"):
            validate_role(RoleEntry(name="r", ttl=600, max_ttl=300))

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            validate_role(RoleEntry(name="r", ttl=-1))

    def test_missing_name_rejected(self):
        with pytest.raises(ValidationError, match="missing role name"):
            validate_role(RoleEntry(name=""))


class TestRoleStore:

    async def test_get_missing_returns_none(self, backend):
        assert await backend.roles.get("nope") is None

    async def test_get_empty_name_raises(self, backend):
        with pytest.raises(ValidationError):
            await backend.roles.get("")

    async def test_write_and_read(self, backend):
        await backend.roles.write("deployer", ttl=60, max_ttl=300)
        role = await backend.roles.get("deployer")
        assert role == RoleEntry(name="deployer", url="", ttl=60, max_ttl=300)

    async def test_write_merges_fields(self, backend):
        await backend.roles.write("deployer", url="https://r.example/", ttl=60, max_ttl=300, token="rt")
        await backend.roles.write("deployer", ttl=120)
        role = await backend.roles.get("deployer")
        assert role.ttl == 120
        assert role.max_ttl == 300
        assert role.url == "https://r.example/"
        assert role.token == "rt"

    async def test_rejected_write_not_persisted(self, backend, storage):
        with pytest.raises(ValidationError):
            await backend.roles.write("deployer", ttl=600, max_ttl=300)
        assert await storage.get("role/deployer") is None
        assert await backend.roles.get("deployer") is None

    async def test_rejected_update_keeps_previous(self, backend):
        await backend.roles.write("deployer", ttl=60, max_ttl=300)
        with pytest.raises(ValidationError):
            await backend.roles.write("deployer", ttl=600)
        assert (await backend.roles.get("deployer")).ttl == 60

    async def test_put_uses_path_name(self, backend):
        await backend.roles.put("deployer", RoleEntry(name="other", ttl=5))
        assert (await backend.roles.get("deployer")).name == "deployer"

    async def test_response_data(self, backend):
        await backend.roles.write("deployer", ttl=60, max_ttl=300, token="secret-role-token")
        role = await backend.roles.get("deployer")
        data = role.to_response_data()
        assert data == {"name": "deployer", "ttl": 60, "max_ttl": 300}
        assert "secret-role-token" not in repr(role)

    async def test_response_data_includes_url_override(self, backend):
        await backend.roles.write("deployer", url="https://r.example/")
        data = (await backend.roles.get("deployer")).to_response_data()
        assert data["url"] == "https://r.example/"

    async def test_delete(self, backend):
        await backend.roles.write("deployer")
        await backend.roles.delete("deployer")
        assert await backend.roles.get("deployer") is None

    async def test_list_storage_order(self, backend):
        for name in ["zeta", "alpha", "mid"]:
            await backend.roles.write(name)
        assert await backend.roles.list() == ["zeta", "alpha", "mid"]
