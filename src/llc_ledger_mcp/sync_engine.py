"""Merge live provider data into the persisted, user-editable account store."""

import copy
import sqlite3
import time
from typing import Any

import structlog

from .catalog import SLOT_IDS, default_account, default_accounts, is_slot_id
from .database import AccountStore
from .errors import StoreNotInitializedError, UnknownSlotError
from .fetcher import LiveDataFetcher


logger = structlog.get_logger(__name__)

# The only fields live data may write
LIVE_FIELDS = ("balance", "transactions")


def overlay_live_fields(account: dict[str, Any], live: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``account`` with only the live fields taken from ``live``."""
    merged = copy.deepcopy(account)
    for field in LIVE_FIELDS:
        if field in live:
            merged[field] = copy.deepcopy(live[field])
    return merged


class SyncEngine:
    """Loads, merges and saves the complete set of account slots."""

    def __init__(self, store: AccountStore, fetcher: LiveDataFetcher | None = None):
        """Initialize sync engine.

        Args:
            store: Persisted account store.
            fetcher: Live data fetcher. Only needed for :meth:`load`.
        """
        self.store = store
        self.fetcher = fetcher

    async def load(self) -> dict[str, Any]:
        """Fetch live data, merge it over the persisted store and persist.

        Returns:
            Complete store covering every slot.

        Raises:
            SyncError: If the provider account list cannot be fetched. The
                persisted store is not touched in that case.
        """
        if self.fetcher is None:
            raise RuntimeError("SyncEngine.load() requires a fetcher")

        start_time = time.time()
        live_by_slot = await self.fetcher.fetch_live_data()
        accounts = self.apply_live_data(live_by_slot)

        logger.info(
            "accounts_loaded",
            live_slots=sorted(live_by_slot),
            duration_ms=int((time.time() - start_time) * 1000),
        )
        return accounts

    def apply_live_data(self, live_by_slot: dict[str, dict[str, Any]]) -> dict[str, Any]:
        """Merge live data over the persisted store (or catalog seed) and persist.

        Args:
            live_by_slot: Mapping of slot id to live ``balance``/``transactions``.

        Returns:
            Complete store covering every slot.
        """
        stored = self.store.get()
        if stored is None:
            logger.info("store_seeded_from_catalog")
            accounts = default_accounts()
        else:
            accounts = {}
            for slot_id in SLOT_IDS:
                if isinstance(stored.get(slot_id), dict):
                    accounts[slot_id] = stored[slot_id]
                else:
                    logger.warning("slot_missing_from_store", slot_id=slot_id)
                    accounts[slot_id] = default_account(slot_id)

        for slot_id, live in live_by_slot.items():
            if slot_id not in accounts:
                logger.warning("live_data_for_unknown_slot", slot_id=slot_id)
                continue
            accounts[slot_id] = overlay_live_fields(accounts[slot_id], live)

        self.store.set(accounts)
        self._record_time("last_load_time")
        return accounts

    def save(self, slot_id: str, account: dict[str, Any]) -> dict[str, Any]:
        """Replace one slot's record in the persisted store.

        The caller builds the full record (see ``utils`` editors); nothing is
        merged here.

        Raises:
            UnknownSlotError: If ``slot_id`` is not a fixed slot.
            StoreNotInitializedError: If no store has been persisted yet.
        """
        if not is_slot_id(slot_id):
            raise UnknownSlotError(f"Unknown account slot: {slot_id}")

        accounts = self.store.get()
        if accounts is None:
            raise StoreNotInitializedError(
                "Cannot save: no persisted account data. Load accounts first."
            )

        accounts[slot_id] = account
        self.store.set(accounts)
        self._record_time("last_save_time")
        logger.info("account_saved", slot_id=slot_id)
        return account

    def get_accounts(self) -> dict[str, Any] | None:
        """Persisted store without contacting the provider."""
        return self.store.get()

    def get_account(self, slot_id: str) -> dict[str, Any]:
        """One slot from the persisted store.

        Raises:
            UnknownSlotError: If ``slot_id`` is not a fixed slot.
            StoreNotInitializedError: If no store has been persisted yet.
        """
        if not is_slot_id(slot_id):
            raise UnknownSlotError(f"Unknown account slot: {slot_id}")
        accounts = self.store.get()
        if accounts is None:
            raise StoreNotInitializedError("No persisted account data. Load accounts first.")
        account = accounts.get(slot_id)
        return account if isinstance(account, dict) else default_account(slot_id)

    def _record_time(self, key: str) -> None:
        try:
            self.store.db.set_meta(key, str(int(time.time())))
        except sqlite3.Error as e:
            logger.error("meta_write_failed", key=key, error=str(e))
