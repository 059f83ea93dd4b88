"""MCP Server for LLC account reconciliation."""

import json
from datetime import datetime
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool

from .catalog import SLOT_IDS, SLOT_KINDS
from .config import get_settings
from .database import AccountStore, Database
from .errors import StoreNotInitializedError, SyncError
from .fetcher import LiveDataFetcher
from .log import configure_logging
from .resolver import Resolver
from .sync_engine import SyncEngine
from .utils import rename_account, total_equity, update_financing_terms, update_rent_record


# Initialize MCP server
server = Server("llc-ledger-mcp")

# Global state
_db: Database | None = None
_sync_engine: SyncEngine | None = None

_SLOT_PROPERTY = {
    "type": "string",
    "enum": list(SLOT_IDS),
    "description": "Account slot id",
}


def get_db() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        db_path = get_settings().db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)

        _db = Database(db_path)
        _db.init_schema()
    return _db


def get_sync_engine() -> SyncEngine:
    """Get or create sync engine instance."""
    global _sync_engine
    if _sync_engine is None:
        settings = get_settings()
        fetcher = LiveDataFetcher(settings, Resolver.from_settings(settings))
        _sync_engine = SyncEngine(AccountStore(get_db()), fetcher)
    return _sync_engine


def init_for_testing(db: Database, fetcher: LiveDataFetcher | None = None) -> None:
    """Initialize server with test database and fetcher.

    Args:
        db: Database instance to use.
        fetcher: Fetcher, usually built on an httpx.MockTransport.
    """
    global _db, _sync_engine
    _db = db
    _sync_engine = SyncEngine(AccountStore(db), fetcher)


def _dump(result: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, ensure_ascii=False, indent=2))]


# ============================================================================
# Tools
# ============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="load_accounts",
            description="Refresh all accounts: fetch live balances and transactions from the bank provider and merge them into the saved account data.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="get_account",
            description="Get one saved account (no network call).",
            inputSchema={
                "type": "object",
                "properties": {"slot_id": _SLOT_PROPERTY},
                "required": ["slot_id"],
            },
        ),
        Tool(
            name="save_account",
            description="Replace one account's saved record with the given full record.",
            inputSchema={
                "type": "object",
                "properties": {
                    "slot_id": _SLOT_PROPERTY,
                    "account": {
                        "type": "object",
                        "description": "Complete account record (name, subtitle, balance, transactions, ...)",
                    },
                },
                "required": ["slot_id", "account"],
            },
        ),
        Tool(
            name="rename_account",
            description="Change an account's display name and/or subtitle.",
            inputSchema={
                "type": "object",
                "properties": {
                    "slot_id": _SLOT_PROPERTY,
                    "name": {"type": "string"},
                    "subtitle": {"type": "string"},
                },
                "required": ["slot_id"],
            },
        ),
        Tool(
            name="update_financing_terms",
            description="Edit a loan's financing terms. A breakdown by contributor recomputes the principal.",
            inputSchema={
                "type": "object",
                "properties": {
                    "slot_id": _SLOT_PROPERTY,
                    "principal": {"type": "number"},
                    "interest_rate": {"type": "number", "description": "Annual rate in percent"},
                    "term_years": {"type": "number"},
                    "breakdown": {
                        "type": "object",
                        "additionalProperties": {"type": "number"},
                        "description": "Contributor name -> share of principal",
                    },
                },
                "required": ["slot_id"],
            },
        ),
        Tool(
            name="update_rent_record",
            description="Edit one tenant's rent, amount due or amount received for a month of the rent roll.",
            inputSchema={
                "type": "object",
                "properties": {
                    "month": {"type": "string", "description": "Month in YYYY-MM format"},
                    "tenant_id": {"type": "integer"},
                    "monthly_rent": {
                        "type": ["number", "string", "null"],
                        "description": "Rent amount, or 'TBD'",
                    },
                    "due": {"type": "number"},
                    "received": {"type": "number"},
                    "renter": {"type": "string"},
                },
                "required": ["month", "tenant_id"],
            },
        ),
        Tool(
            name="get_total_equity",
            description="Total assets minus total liabilities across saved accounts.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    engine = get_sync_engine()

    if name == "load_accounts":
        try:
            accounts = await engine.load()
        except SyncError as e:
            return _dump({
                "error": f"Failed to load live data: {e}",
                "cached_accounts": engine.get_accounts(),
            })
        return _dump({"accounts": accounts})

    try:
        if name == "get_account":
            result = engine.get_account(arguments.get("slot_id"))

        elif name == "save_account":
            account = arguments.get("account")
            if not isinstance(account, dict):
                raise ValueError("account must be an object")
            result = engine.save(arguments.get("slot_id"), account)

        elif name == "rename_account":
            slot_id = arguments.get("slot_id")
            updated = rename_account(
                engine.get_account(slot_id),
                name=arguments.get("name"),
                subtitle=arguments.get("subtitle"),
            )
            result = engine.save(slot_id, updated)

        elif name == "update_financing_terms":
            slot_id = arguments.get("slot_id")
            updated = update_financing_terms(
                engine.get_account(slot_id),
                principal=arguments.get("principal"),
                interest_rate=arguments.get("interest_rate"),
                term_years=arguments.get("term_years"),
                breakdown=arguments.get("breakdown"),
            )
            result = engine.save(slot_id, updated)

        elif name == "update_rent_record":
            edits = {
                key: arguments[key]
                for key in ("monthly_rent", "due", "received", "renter")
                if key in arguments
            }
            updated = update_rent_record(
                engine.get_account("rent"),
                month=arguments.get("month"),
                tenant_id=arguments.get("tenant_id"),
                **edits,
            )
            result = engine.save("rent", updated)

        elif name == "get_total_equity":
            accounts = engine.get_accounts()
            if accounts is None:
                raise StoreNotInitializedError("No persisted account data. Load accounts first.")
            result = total_equity(accounts)

        else:
            raise ValueError(f"Unknown tool: {name}")

    except (SyncError, ValueError) as e:
        return _dump({"error": str(e)})

    return _dump(result)


# ============================================================================
# Resources
# ============================================================================

def get_accounts_resource(engine: SyncEngine) -> dict[str, Any]:
    """Saved accounts with balances, for LLM context."""
    accounts = engine.get_accounts()
    if accounts is None:
        return {"accounts": [], "loaded": False}

    summary = []
    for slot_id in SLOT_IDS:
        account = accounts.get(slot_id) or {}
        summary.append({
            "slot_id": slot_id,
            "kind": SLOT_KINDS[slot_id],
            "name": account.get("name"),
            "subtitle": account.get("subtitle"),
            "balance": account.get("balance"),
            "transaction_count": len(account.get("transactions") or []),
        })
    return {"accounts": summary, "loaded": True, **total_equity(accounts)}


def get_sync_status_resource(db: Database) -> dict[str, Any]:
    """Time of the last load and save."""
    status: dict[str, Any] = {}
    for key in ("last_load_time", "last_save_time"):
        value = db.get_meta(key)
        try:
            status[key] = datetime.fromtimestamp(int(value)).isoformat() if value else None
        except (ValueError, TypeError):
            status[key] = None
    status["never_loaded"] = status["last_load_time"] is None
    return status


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="ledger://accounts",
            name="Accounts",
            description="Saved accounts with balances and total equity",
            mimeType="application/json",
        ),
        Resource(
            uri="ledger://sync-status",
            name="Sync Status",
            description="Last load and save times",
            mimeType="application/json",
        ),
    ]


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read resource content."""
    uri = str(uri)
    if uri == "ledger://accounts":
        result = get_accounts_resource(get_sync_engine())
    elif uri == "ledger://sync-status":
        result = get_sync_status_resource(get_db())
    else:
        raise ValueError(f"Unknown resource: {uri}")

    return json.dumps(result, ensure_ascii=False, indent=2)


# ============================================================================
# Main
# ============================================================================

def main() -> None:
    """Run the MCP server."""
    import asyncio

    from mcp.server.stdio import stdio_server

    configure_logging(get_settings().log_level)

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    asyncio.run(run())


if __name__ == "__main__":
    main()
