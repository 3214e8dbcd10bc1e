"""Shared fixtures for the key broker test suite."""

import json
import logging
import re

import httpx
import pytest

from keybroker.backend.factory import CredentialBackend
from keybroker.config.settings import Settings, get_settings
from keybroker.logging.audit import get_audit_logger
from keybroker.storage.memory import InMemoryStorage

BALENA_URL = "https://api.example.com/"
MASTER_TOKEN = "master-token-abc"

FILTER_RE = re.compile(r"^\(name eq '(?P<name>.*)'\)$")
DELETE_RE = re.compile(r"/v6/api_key\((?P<id>\d+)\)$")


class FakeBalenaAPI:
    """In-memory stand-in for the balena api_key endpoints."""

    def __init__(self):
        self.keys: dict[int, dict] = {}
        self.requests: list[httpx.Request] = []
        self.next_id = 100
        self.fail_create = False
        self.fail_lookup = False
        self.fail_delete = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/api-key/user/full"):
            if self.fail_create:
                return httpx.Response(500, text="internal error")
            body = json.loads(request.content)
            key_id = self.next_id
            self.next_id += 1
            value = f"balena-key-{key_id}"
            self.keys[key_id] = {
                "id": key_id,
                "name": body["name"],
                "description": body["description"],
                "expiry_date": body["expiryDate"],
                "value": value,
                "authorization": request.headers.get("Authorization"),
                "host": request.url.host,
            }
            return httpx.Response(200, text=value)

        if request.method == "GET" and path.endswith("/v6/api_key"):
            if self.fail_lookup:
                return httpx.Response(503, text="unavailable")
            match = FILTER_RE.match(request.url.params.get("$filter", ""))
            name = match.group("name").replace("''", "'") if match else None
            found = [
                {"id": k["id"], "name": k["name"], "description": k["description"]}
                for k in self.keys.values()
                if k["name"] == name
            ]
            return httpx.Response(200, json={"d": found})

        match = DELETE_RE.search(path)
        if request.method == "DELETE" and match:
            if self.fail_delete:
                return httpx.Response(500, text="delete failed")
            self.keys.pop(int(match.group("id")), None)
            return httpx.Response(200, text="OK")

        return httpx.Response(404, text="not found")

    def calls(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]


@pytest.fixture
def balena_api() -> FakeBalenaAPI:
    return FakeBalenaAPI()


@pytest.fixture
async def http_client(balena_api):
    client = httpx.AsyncClient(transport=httpx.MockTransport(balena_api.handler))
    yield client
    await client.aclose()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        upstream_master_token="",
        default_lease_ttl=3600,
        max_lease_ttl=86400,
        revoke_strict=False,
    )


@pytest.fixture
async def backend(storage, settings, http_client):
    """A backend wired to the fake balena API."""
    b = CredentialBackend(storage, settings, http=http_client)
    yield b
    await b.cache.invalidate()


@pytest.fixture
async def configured_backend(backend):
    """Backend with a config pointing at the fake API and a master token."""
    await backend.config.put(url=BALENA_URL, token=MASTER_TOKEN)
    return backend


@pytest.fixture
def audit_records():
    """Capture records written to the audit logger."""
    records: list[logging.LogRecord] = []

    class _ListHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    logger = get_audit_logger()
    handler = _ListHandler()
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield records
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(STORAGE_BACKEND="json", REVOKE_STRICT="true")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()
