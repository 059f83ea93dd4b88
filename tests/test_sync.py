"""Tests for the merge/persistence engine."""

import copy
import sqlite3

import httpx
import pytest

from llc_ledger_mcp.catalog import SLOT_IDS, default_accounts
from llc_ledger_mcp.database import AccountStore, Database
from llc_ledger_mcp.errors import StoreNotInitializedError, SyncError, UnknownSlotError
from llc_ledger_mcp.sync_engine import LIVE_FIELDS, SyncEngine, overlay_live_fields
from llc_ledger_mcp.utils import rename_account

from conftest import FakeProvider


@pytest.fixture
def engine(store: AccountStore) -> SyncEngine:
    """Engine without a fetcher, for apply_live_data/save tests."""
    return SyncEngine(store)


@pytest.fixture
def edited_store(store: AccountStore) -> AccountStore:
    """Store holding user edits on several slots."""
    accounts = default_accounts()
    accounts["llcBank"]["subtitle"] = "Operating account"
    accounts["helocLoan"]["name"] = "Julie's HELOC"
    accounts["helocLoan"]["financingTerms"]["interestRate"] = 6.9
    accounts["rent"]["baseTenants"][0]["renter"] = "Maria"
    store.set(accounts)
    return store


class TestOverlay:
    """Test the live-field whitelist."""

    def test_only_live_fields_copied(self):
        account = {"name": "LLC Checking", "subtitle": "s", "balance": 1, "transactions": [], "type": "asset"}
        live = {"balance": 2, "transactions": [{"date": "d"}], "name": "Provider Name", "type": "depository"}

        merged = overlay_live_fields(account, live)

        assert merged == {
            "name": "LLC Checking",
            "subtitle": "s",
            "balance": 2,
            "transactions": [{"date": "d"}],
            "type": "asset",
        }
        assert account["balance"] == 1

    def test_missing_live_field_keeps_existing(self):
        merged = overlay_live_fields({"balance": 5, "transactions": [1]}, {"balance": None})
        assert merged == {"balance": None, "transactions": [1]}

    def test_live_fields_constant(self):
        assert LIVE_FIELDS == ("balance", "transactions")


class TestApplyLiveData:
    """Test merging without HTTP."""

    def test_first_run_seeds_catalog(self, engine: SyncEngine, store: AccountStore):
        live = {"llcSavings": {"balance": 2500, "transactions": []}}

        result = engine.apply_live_data(live)

        expected = default_accounts()
        expected["llcSavings"]["balance"] = 2500
        expected["llcSavings"]["transactions"] = []
        assert result == expected
        assert store.get() == expected

    def test_field_isolation(self, engine: SyncEngine, edited_store: AccountStore):
        before = copy.deepcopy(edited_store.get())
        live = {
            "llcBank": {"balance": 999, "transactions": [{"date": "2025-09-01", "description": "x", "debit": 1, "credit": 0}]},
            "helocLoan": {"balance": 48000, "transactions": []},
            "rent": {"balance": 12, "transactions": []},
        }

        result = engine.apply_live_data(live)

        for slot_id in SLOT_IDS:
            for field in set(before[slot_id]) | set(result[slot_id]):
                if slot_id in live and field in LIVE_FIELDS:
                    assert result[slot_id][field] == live[slot_id][field]
                else:
                    assert result[slot_id][field] == before[slot_id][field], (slot_id, field)

    def test_idempotent(self, engine: SyncEngine, edited_store: AccountStore):
        live = {"llcBank": {"balance": 31500, "transactions": []}}

        first = engine.apply_live_data(live)
        second = engine.apply_live_data(live)

        assert first == second
        assert edited_store.get() == second

    def test_missing_slot_filled_from_catalog(self, engine: SyncEngine, store: AccountStore):
        partial = default_accounts()
        del partial["propertyAsset"]
        partial["rent"] = "corrupt"
        store.set(partial)

        result = engine.apply_live_data({})

        assert list(result) == list(SLOT_IDS)
        assert result["propertyAsset"] == default_accounts()["propertyAsset"]
        assert result["rent"] == default_accounts()["rent"]

    def test_unknown_live_slot_ignored(self, engine: SyncEngine):
        result = engine.apply_live_data({"creditCard": {"balance": 1, "transactions": []}})
        assert "creditCard" not in result

    def test_records_load_time(self, engine: SyncEngine, db: Database):
        engine.apply_live_data({})
        assert db.get_meta("last_load_time") is not None

    def test_persist_failure_still_returns_result(self, engine: SyncEngine, db: Database, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(db, "set_value", broken)
        monkeypatch.setattr(db, "set_meta", broken)

        result = engine.apply_live_data({"llcBank": {"balance": 1, "transactions": []}})

        assert result["llcBank"]["balance"] == 1
        assert engine.get_accounts() is None


class TestLoad:
    """Test the full load with a fake provider."""

    @pytest.mark.asyncio
    async def test_live_data_merged_over_saved_edits(self, make_engine, store: AccountStore, checking_transactions):
        saved = default_accounts()
        saved["llcBank"]["balance"] = 12
        store.set(saved)
        provider = FakeProvider(
            accounts=[{"id": "acc_llc_checking", "balance": 100}],
            balances={"acc_llc_checking": 31500},
            transactions={"acc_llc_checking": checking_transactions},
        )

        result = await make_engine(provider).load()

        assert result["llcBank"]["name"] == "LLC Checking"
        assert result["llcBank"]["balance"] == 31500
        assert result["llcBank"]["transactions"] == checking_transactions
        assert store.get() == result

    @pytest.mark.asyncio
    async def test_load_twice_is_stable(self, make_engine, edited_store: AccountStore, td_bank_accounts):
        provider = FakeProvider(
            accounts=td_bank_accounts,
            balances={"tdbank-business-checking-123": 10, "tdbank-business-savings-456": 20},
        )
        engine = make_engine(provider)

        first = await engine.load()
        second = await engine.load()

        assert first == second
        assert second["llcBank"]["subtitle"] == "Operating account"

    @pytest.mark.asyncio
    async def test_unresolved_record_changes_nothing(self, make_engine, edited_store: AccountStore):
        before = edited_store.get()
        provider = FakeProvider(
            accounts=[{"id": "acc_llc_credit", "name": "LLC Credit Card", "balance": -400}],
            balances={"acc_llc_credit": -400},
        )

        result = await make_engine(provider).load()

        assert result == before

    @pytest.mark.asyncio
    async def test_partial_failure_contained(self, make_engine, checking_transactions):
        provider = FakeProvider(
            accounts=[{"id": "acc_llc_checking"}, {"id": "acc_mortgage_loan"}],
            balances={"acc_llc_checking": 4000, "acc_mortgage_loan": 199000},
            transactions={"acc_mortgage_loan": checking_transactions},
            errors={("acc_llc_checking", "transactions"): (500, {"error": "timeout"})},
        )

        result = await make_engine(provider).load()

        assert result["llcBank"]["balance"] == 4000
        assert result["llcBank"]["transactions"] == []
        assert result["mortgageLoan"]["balance"] == 199000
        assert result["mortgageLoan"]["transactions"] == checking_transactions
        assert result["propertyAsset"] == default_accounts()["propertyAsset"]

    @pytest.mark.asyncio
    async def test_account_list_failure_writes_nothing(self, make_engine, store: AccountStore, db: Database):
        provider = FakeProvider(accounts=[], accounts_response=httpx.Response(500))

        with pytest.raises(SyncError):
            await make_engine(provider).load()

        assert store.get() is None
        assert db.get_meta("last_load_time") is None

    @pytest.mark.asyncio
    async def test_account_list_failure_keeps_saved_store(self, make_engine, edited_store: AccountStore):
        before = edited_store.get()
        provider = FakeProvider(accounts=[], accounts_response=httpx.Response(500))

        with pytest.raises(SyncError):
            await make_engine(provider).load()

        assert edited_store.get() == before

    @pytest.mark.asyncio
    async def test_load_without_fetcher(self, engine: SyncEngine):
        with pytest.raises(RuntimeError):
            await engine.load()


class TestSave:
    """Test the single-slot save path."""

    def test_save_replaces_slot(self, engine: SyncEngine, edited_store: AccountStore, db: Database):
        before = edited_store.get()
        updated = rename_account(before["llcSavings"], name="Reserve Fund")

        returned = engine.save("llcSavings", updated)

        after = edited_store.get()
        assert returned == updated
        assert after["llcSavings"]["name"] == "Reserve Fund"
        assert {k: v for k, v in after.items() if k != "llcSavings"} == {
            k: v for k, v in before.items() if k != "llcSavings"
        }
        assert db.get_meta("last_save_time") is not None

    def test_save_is_full_replace(self, engine: SyncEngine, edited_store: AccountStore):
        engine.save("propertyAsset", {"name": "672 Elm St", "type": "asset"})
        assert edited_store.get()["propertyAsset"] == {"name": "672 Elm St", "type": "asset"}

    def test_save_without_store_fails(self, engine: SyncEngine):
        with pytest.raises(StoreNotInitializedError):
            engine.save("llcBank", default_accounts()["llcBank"])

    def test_save_unknown_slot(self, engine: SyncEngine, edited_store: AccountStore):
        with pytest.raises(UnknownSlotError):
            engine.save("creditCard", {})

    def test_edit_survives_next_load(self, engine: SyncEngine, edited_store: AccountStore):
        account = engine.get_account("mortgageLoan")
        engine.save("mortgageLoan", rename_account(account, subtitle="Refinanced 2025"))

        result = engine.apply_live_data({"mortgageLoan": {"balance": 195000, "transactions": []}})

        assert result["mortgageLoan"]["subtitle"] == "Refinanced 2025"
        assert result["mortgageLoan"]["balance"] == 195000


class TestReadAccess:
    """Test store reads that never touch the provider."""

    def test_get_account(self, engine: SyncEngine, edited_store: AccountStore):
        assert engine.get_account("helocLoan")["name"] == "Julie's HELOC"

    def test_get_account_before_load(self, engine: SyncEngine):
        with pytest.raises(StoreNotInitializedError):
            engine.get_account("llcBank")

    def test_get_account_unknown_slot(self, engine: SyncEngine, edited_store: AccountStore):
        with pytest.raises(UnknownSlotError):
            engine.get_account("nope")
