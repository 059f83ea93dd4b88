"""Fetch live balances and transactions for every provider account."""

import asyncio
from typing import Any

import httpx
import structlog

from .config import Settings
from .errors import ProviderError, SyncError
from .provider import ProviderClient
from .resolver import STATIC_ACCOUNT_IDS, Resolver, describe, normalize


logger = structlog.get_logger(__name__)

# Keys tried, in order, when the balance payload is a mapping
BALANCE_KEYS = ("ledger", "available", "current")


def extract_balance(value: Any) -> float | None:
    """Numeric balance from a number or a nested balance mapping."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    if isinstance(value, dict):
        nested = extract_balance(value.get("balance"))
        if nested is not None:
            return nested
        for key in BALANCE_KEYS:
            amount = extract_balance(value.get(key))
            if amount is not None:
                return amount
    return None


def account_id_of(record: dict[str, Any]) -> str | None:
    """Provider id used in per-account URLs; None when missing or blank."""
    account_id = record.get("id")
    if isinstance(account_id, bool) or not isinstance(account_id, (str, int)):
        return None
    account_id = str(account_id)
    return account_id if account_id.strip() else None


def _amount(value: Any) -> float:
    amount = extract_balance(value)
    return amount if amount is not None else 0


def normalize_transaction(item: dict[str, Any]) -> dict[str, Any]:
    """Reduce a provider transaction to ``{date, description, debit, credit}``.

    Items with a signed ``amount`` instead of debit/credit map money in to
    debit and money out to credit.
    """
    if "debit" in item or "credit" in item:
        debit = _amount(item.get("debit"))
        credit = _amount(item.get("credit"))
    else:
        amount = _amount(item.get("amount"))
        debit = amount if amount >= 0 else 0
        credit = -amount if amount < 0 else 0

    return {
        "date": item.get("date"),
        "description": item.get("description") or "",
        "debit": debit,
        "credit": credit,
    }


def extract_transactions(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("transactions")
    if not isinstance(data, list):
        return []
    return [normalize_transaction(item) for item in data if isinstance(item, dict)]


class LiveDataFetcher:
    """Retrieves live data per provider account and keys it by slot."""

    def __init__(
        self,
        settings: Settings,
        resolver: Resolver,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize fetcher.

        Args:
            settings: Provider URL, token, timeout and page size.
            resolver: Maps provider records to slots.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.settings = settings
        self.resolver = resolver
        self.transport = transport

    async def fetch_live_data(self) -> dict[str, dict[str, Any]]:
        """Fetch balance and transactions for every account.

        Returns:
            Mapping of slot id to ``{"balance": ..., "transactions": [...]}``.
            Slots with no resolved provider account are absent.

        Raises:
            SyncError: If the account list cannot be fetched.
        """
        async with ProviderClient(self.settings, transport=self.transport) as client:
            try:
                accounts = await client.list_accounts()
            except httpx.HTTPError as e:
                raise SyncError(f"HTTP error fetching accounts: {e}") from e
            except (ProviderError, ValueError) as e:
                raise SyncError(f"Failed to fetch accounts: {e}") from e

            records = [record for record in accounts if isinstance(record, dict)]
            if len(records) != len(accounts):
                logger.warning("account_records_skipped", count=len(accounts) - len(records))

            live_records = await asyncio.gather(
                *(self._fetch_account(client, record) for record in records)
            )

        slots = self.resolver.resolve_batch(records)

        live_by_slot: dict[str, dict[str, Any]] = {}
        for record, slot_id, live in zip(records, slots, live_records):
            if slot_id is None:
                continue
            if slot_id in live_by_slot:
                logger.warning("slot_overwritten", slot_id=slot_id, **describe(record))
            live_by_slot[slot_id] = live

        logger.info(
            "live_data_fetched",
            accounts=len(records),
            resolved=len(live_by_slot),
        )
        return live_by_slot

    async def _fetch_account(self, client: ProviderClient, record: dict[str, Any]) -> dict[str, Any]:
        account_id = account_id_of(record)
        raw_balance = extract_balance(record.get("balance"))

        if account_id is None:
            return {"balance": raw_balance, "transactions": []}

        balance_data, transactions_data = await asyncio.gather(
            self._fetch_part(client.get_balance(account_id), account_id, "balance"),
            self._fetch_part(
                client.get_transactions(account_id, self.settings.transactions_limit),
                account_id,
                "transactions",
            ),
        )

        balance = extract_balance(balance_data)
        return {
            "balance": balance if balance is not None else raw_balance,
            "transactions": extract_transactions(transactions_data),
        }

    async def _fetch_part(self, request: Any, account_id: str, kind: str) -> Any:
        """Await one per-account request; failures yield None."""
        try:
            return await request
        except ProviderError as e:
            if e.is_not_found and normalize(account_id) in STATIC_ACCOUNT_IDS:
                logger.info("static_account_data_missing", account_id=account_id, kind=kind)
            else:
                logger.warning(
                    "account_fetch_failed",
                    account_id=account_id,
                    kind=kind,
                    status_code=e.status_code,
                    error=e.message,
                )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("account_fetch_failed", account_id=account_id, kind=kind, error=str(e))
        return None
