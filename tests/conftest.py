"""Test fixtures for LLC ledger tests."""

from typing import Any

import httpx
import pytest

from llc_ledger_mcp.config import Settings
from llc_ledger_mcp.database import AccountStore, Database
from llc_ledger_mcp.fetcher import LiveDataFetcher
from llc_ledger_mcp.resolver import Resolver
from llc_ledger_mcp.sync_engine import SyncEngine


API_BASE_URL = "http://provider.test/api"


class FakeProvider:
    """In-process bank data provider served through httpx.MockTransport.

    Accounts without a configured balance answer 404, like the static
    dataset does for accounts it has no balance for.
    """

    def __init__(
        self,
        accounts: list[Any],
        balances: dict[str, Any] | None = None,
        transactions: dict[str, list[dict[str, Any]]] | None = None,
        errors: dict[tuple[str, str], tuple[int, Any]] | None = None,
        accounts_response: httpx.Response | None = None,
    ):
        self.accounts = accounts
        self.balances = balances or {}
        self.transactions = transactions or {}
        self.errors = errors or {}
        self.accounts_response = accounts_response
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.removeprefix("/api/").split("/")

        if parts == ["accounts"]:
            if self.accounts_response is not None:
                return self.accounts_response
            return httpx.Response(200, json={"accounts": self.accounts})

        _, account_id, kind = parts
        if (account_id, kind) in self.errors:
            status, body = self.errors[(account_id, kind)]
            if isinstance(body, dict):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=body or "")

        if kind == "balance":
            if account_id not in self.balances:
                return httpx.Response(404, json={"error": "Balance not found"})
            return httpx.Response(200, json={"account_id": account_id, "balance": self.balances[account_id]})

        return httpx.Response(
            200,
            json={"account_id": account_id, "transactions": self.transactions.get(account_id, [])},
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at the fake provider."""
    return Settings(api_base_url=API_BASE_URL, api_token=None, account_overrides=None)


@pytest.fixture
def resolver() -> Resolver:
    return Resolver()


@pytest.fixture
def db() -> Database:
    """Create in-memory database with schema."""
    database = Database(":memory:")
    database.init_schema()
    return database


@pytest.fixture
def store(db: Database) -> AccountStore:
    return AccountStore(db)


@pytest.fixture
def make_fetcher(settings: Settings, resolver: Resolver):
    """Build a LiveDataFetcher bound to a FakeProvider."""

    def _make(provider: FakeProvider) -> LiveDataFetcher:
        return LiveDataFetcher(settings, resolver, transport=provider.transport)

    return _make


@pytest.fixture
def make_engine(store: AccountStore, make_fetcher):
    """Build a SyncEngine bound to a FakeProvider and the in-memory store."""

    def _make(provider: FakeProvider) -> SyncEngine:
        return SyncEngine(store, make_fetcher(provider))

    return _make


@pytest.fixture
def checking_transactions() -> list[dict[str, Any]]:
    return [
        {"date": "2025-04-01", "description": "Rental Income Received", "debit": 3500, "credit": 0},
    ]


@pytest.fixture
def td_bank_accounts() -> list[dict[str, Any]]:
    """Teller-style TD Bank accounts with no built-in id, name or last-four match."""
    return [
        {
            "id": "tdbank-business-checking-123",
            "name": "Business Checking",
            "type": "depository",
            "subtype": "checking",
            "provider": "TD Bank",
            "provider_account_id": "tdbank-account-001",
            "teller_account_id": "teller-account-checking",
            "balance": 0,
        },
        {
            "id": "tdbank-business-savings-456",
            "name": "Business Savings",
            "type": "depository",
            "subtype": "savings",
            "provider": "TD Bank",
            "provider_account_id": "tdbank-account-002",
            "teller_account_id": "teller-account-savings",
            "balance": 0,
        },
    ]
