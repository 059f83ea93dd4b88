"""HTTP client for the bank data provider API."""

from typing import Any
from urllib.parse import quote

import httpx

from .config import Settings
from .errors import ProviderError


def handle_response(response: httpx.Response) -> Any:
    """Return the parsed JSON body, or raise ProviderError on non-2xx.

    The error message comes from the body's ``error`` or ``message`` key when
    the body is JSON, otherwise from the status line.
    """
    if not response.is_success:
        message = f"API Error: {response.status_code} {response.reason_phrase}".rstrip()
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("error") or body.get("message")
            if isinstance(detail, str) and detail:
                message = detail
        raise ProviderError(message, status_code=response.status_code)

    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type:
        return None
    return response.json()


class ProviderClient:
    """Async client for ``/accounts`` and per-account balance/transactions.

    Use as an async context manager so that one connection pool serves all
    requests of a load.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ProviderClient":
        headers = {"Accept": "application/json"}
        if self.settings.api_token:
            headers["Authorization"] = f"Bearer {self.settings.api_token}"
        self._client = httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            headers=headers,
            timeout=self.settings.request_timeout,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if self._client is None:
            raise RuntimeError("ProviderClient used outside of 'async with'")
        response = await self._client.get(path, params=params)
        return handle_response(response)

    async def list_accounts(self) -> list[Any]:
        """GET /accounts. Accepts a bare list or ``{"accounts": [...]}``."""
        data = await self._get("/accounts")
        if isinstance(data, dict):
            data = data.get("accounts")
        if not isinstance(data, list):
            raise ProviderError("Account list response is not a list of accounts")
        return data

    async def get_balance(self, account_id: str) -> Any:
        """GET /accounts/{id}/balance."""
        return await self._get(f"/accounts/{quote(account_id, safe='')}/balance")

    async def get_transactions(self, account_id: str, limit: int) -> Any:
        """GET /accounts/{id}/transactions?limit=N."""
        return await self._get(
            f"/accounts/{quote(account_id, safe='')}/transactions",
            params={"limit": limit},
        )
