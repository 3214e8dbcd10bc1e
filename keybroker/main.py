"""Balena Key Broker: FastAPI application entry point.

Issues short-lived balena API keys for named roles and exposes the
revoke/renew callbacks the host's lease manager drives. Access control
to these endpoints is the host's job.
"""

import re
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from keybroker.backend.errors import (
    BrokerError,
    ConfigurationError,
    MalformedLeaseError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from keybroker.backend.factory import close_backend, get_backend
from keybroker.logging.audit import (
    generate_request_id,
    get_audit_logger,
    request_id_var,
    setup_logging,
)

VERSION = "0.3.0"

# Vault-style generic name: word chars, dashes and dots, no leading/trailing punctuation
NAME_PATTERN = re.compile(r"^\w(([\w.-]+)?\w)?$")
DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}

ERROR_STATUS = {
    ConfigurationError: 500,
    NotFoundError: 404,
    ValidationError: 400,
    UpstreamError: 502,
    MalformedLeaseError: 400,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    get_audit_logger().info("Broker started")
    yield
    await close_backend()
    get_audit_logger().info("Broker stopped")


app = FastAPI(
    title="Balena Key Broker",
    description="Dynamic, lease-bound balena API keys",
    version=VERSION,
    lifespan=lifespan,
)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    rid = generate_request_id()
    token = request_id_var.set(rid)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-Id"] = rid
    return response


@app.exception_handler(BrokerError)
async def broker_error_handler(request: Request, exc: BrokerError):
    status = ERROR_STATUS.get(type(exc), 500)
    get_audit_logger().warning(
        "Request failed",
        extra={"audit_data": {
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error": exc.message,
            "status": status,
        }},
    )
    return JSONResponse(status_code=status, content={"error": exc.message})


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


# --- config ---


@app.post("/config", status_code=204)
@app.put("/config", status_code=204)
async def write_config(request: Request):
    body = await _read_body(request)
    await get_backend().config.put(
        url=_optional_str(body, "url"),
        token=_optional_str(body, "token"),
    )
    return Response(status_code=204)


@app.get("/config")
async def read_config():
    config = await get_backend().config.get()
    if config is None:
        raise NotFoundError("backend is not configured")
    return config.to_response_data()


@app.delete("/config", status_code=204)
async def delete_config():
    await get_backend().config.delete()
    return Response(status_code=204)


# --- roles ---


@app.get("/role")
async def list_roles():
    return {"keys": await get_backend().roles.list()}


@app.post("/role/{name}", status_code=204)
@app.put("/role/{name}", status_code=204)
async def write_role(name: str, request: Request):
    body = await _read_body(request)
    await get_backend().roles.write(
        _role_name(name),
        url=_optional_str(body, "url"),
        ttl=_optional_duration(body, "ttl"),
        max_ttl=_optional_duration(body, "max_ttl"),
        token=_optional_str(body, "token"),
    )
    return Response(status_code=204)


@app.get("/role/{name}")
async def read_role(name: str):
    role_name = _role_name(name)
    role = await get_backend().roles.get(role_name)
    if role is None:
        raise NotFoundError(f"role not found: {role_name}")
    return role.to_response_data()


@app.delete("/role/{name}", status_code=204)
async def delete_role(name: str):
    await get_backend().roles.delete(_role_name(name))
    return Response(status_code=204)


# --- credentials ---


@app.get("/creds/{name}")
@app.post("/creds/{name}")
async def read_creds(name: str, request: Request):
    """Issue a new balena API key for the role.

    Accepts ``balenaName``, ``balenaDesc`` and ``ttl`` from the query
    string (GET) or JSON body (POST). Both names are lower-cased.
    """
    if request.method == "POST":
        fields = await _read_body(request)
    else:
        fields = dict(request.query_params)

    secret = await get_backend().read_creds(
        _role_name(name),
        key_name=(_optional_str(fields, "balenaName") or "").lower(),
        key_desc=(_optional_str(fields, "balenaDesc") or "").lower(),
        ttl=_optional_duration(fields, "ttl") or 0,
    )
    return {
        "data": secret.data,
        "internal_data": secret.internal_data,
        "lease": {**asdict(secret.lease), "renewable": secret.renewable},
    }


# --- lease callbacks ---


@app.post("/lease/revoke", status_code=204)
async def revoke_lease(request: Request):
    body = await _read_body(request)
    await get_backend().revoke(body.get("internal_data"))
    return Response(status_code=204)


@app.post("/lease/renew")
async def renew_lease(request: Request):
    body = await _read_body(request)
    window = await get_backend().renew(body.get("internal_data"))
    return asdict(window)


# --- request helpers ---


async def _read_body(request: Request) -> dict:
    """Parse a JSON object body. An empty body is an empty object."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("request body is not valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("request body must be a JSON object")
    return body


def _role_name(name: str) -> str:
    name = name.lower()
    if not NAME_PATTERN.match(name):
        raise ValidationError(f"invalid role name: {name}")
    return name


def _optional_str(fields: dict, key: str) -> str | None:
    value = fields.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def _optional_duration(fields: dict, key: str) -> int | None:
    value = fields.get(key)
    if value is None or value == "":
        return None
    return parse_duration(value, key)


def parse_duration(value, key: str = "duration") -> int:
    """Parse seconds from an int or a Go-style duration like "1h30m"."""
    if isinstance(value, bool):
        raise ValidationError(f"invalid {key}: {value!r}")
    if isinstance(value, int):
        seconds = value
    elif isinstance(value, float) and value.is_integer():
        seconds = int(value)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        seconds = int(value.strip())
    elif isinstance(value, str):
        text = value.strip()
        parts = DURATION_PART.findall(text)
        if not parts or "".join(n + u for n, u in parts) != text:
            raise ValidationError(f"invalid {key}: {value!r}")
        seconds = int(sum(float(n) * DURATION_UNITS[u] for n, u in parts))
    else:
        raise ValidationError(f"invalid {key}: {value!r}")

    if seconds < 0:
        raise ValidationError(f"{key} must not be negative")
    return seconds
