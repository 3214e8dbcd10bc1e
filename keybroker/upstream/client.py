"""Typed wrapper over httpx for the balena cloud API."""

from datetime import datetime, timezone
from urllib.parse import quote

import httpx

from keybroker.backend.errors import UpstreamError

CREATE_KEY_PATH = "api-key/user/full"
LOOKUP_KEY_PATH = (
    "v6/api_key?$select=id,created_at,name,description,expiry_date"
    "&$filter=(name%20eq%20%27{name}%27)"
)
DELETE_KEY_PATH = "v6/api_key({key_id})"


class BalenaClient:
    """One base URL and one bearer credential over a shared connection pool.

    Instances are cheap; the pool belongs to whoever created ``http``.
    """

    def __init__(self, base_url: str, token: str, http: httpx.AsyncClient):
        self.base_url = base_url
        self._token = token
        self._http = http

    def new_request(self, method: str, path: str, body: dict | None = None) -> httpx.Request:
        """Build a request for path relative to the base URL.

        The path is appended verbatim so pre-encoded OData queries reach
        the server unchanged.
        """
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }
        return self._http.build_request(method, url, json=body, headers=headers)

    async def do(self, request: httpx.Request):
        """Send request and decode the response.

        Returns the decoded JSON body, the raw text when the body is not
        JSON, or None for an empty body.
        """
        target = f"{request.method} {request.url.path}"
        try:
            response = await self._http.send(request)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"balena API timed out: {target}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Cannot reach balena API: {target}: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"balena API returned {response.status_code}: {target}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def create_api_key(self, name: str, description: str, expiry_date: datetime) -> str:
        """Create a named user API key and return its raw value."""
        body = {
            "name": name,
            "description": description,
            "expiryDate": expiry_date.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        result = await self.do(self.new_request("POST", CREATE_KEY_PATH, body))
        if not isinstance(result, str) or not result:
            raise UpstreamError("balena API returned no key value")
        return result.strip()

    async def find_api_key_id(self, name: str) -> int | None:
        """Look up the numeric id of the key registered under name."""
        # OData string literals escape a quote by doubling it
        literal = quote(name.replace("'", "''"), safe="")
        result = await self.do(self.new_request("GET", LOOKUP_KEY_PATH.format(name=literal)))
        if not isinstance(result, dict) or not isinstance(result.get("d"), list):
            raise UpstreamError("Unexpected api_key lookup response from balena API")
        if not result["d"]:
            return None
        return int(result["d"][0]["id"])

    async def delete_api_key(self, key_id: int) -> None:
        await self.do(self.new_request("DELETE", DELETE_KEY_PATH.format(key_id=key_id)))
