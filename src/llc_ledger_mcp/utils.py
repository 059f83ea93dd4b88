"""Account editors and summary calculations.

Editors never mutate their input: they return the full replacement record
that is then handed to ``SyncEngine.save``.
"""

import copy
import re
from typing import Any


BREAKDOWN_TOTAL_KEY = "Total"
MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

_UNSET: Any = object()


def _require_kind(account: dict[str, Any], kind: str) -> None:
    if account.get("type") != kind:
        raise ValueError(f"Expected a {kind} account, got {account.get('type')!r}")


def _non_negative(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    if value < 0:
        raise ValueError(f"{name} must not be negative")
    return value


def rename_account(
    account: dict[str, Any],
    name: str | None = None,
    subtitle: str | None = None,
) -> dict[str, Any]:
    """Change display name and/or subtitle, keeping everything else."""
    updated = copy.deepcopy(account)
    if name is not None:
        if not name.strip():
            raise ValueError("name must not be empty")
        updated["name"] = name.strip()
    if subtitle is not None:
        updated["subtitle"] = subtitle.strip()
    return updated


def breakdown_contributors(breakdown: dict[str, Any]) -> dict[str, Any]:
    """Breakdown entries without the derived ``Total`` entry."""
    return {k: v for k, v in breakdown.items() if k != BREAKDOWN_TOTAL_KEY}


def validate_financing_terms(terms: dict[str, Any]) -> None:
    """Check numeric fields and that the breakdown sums to the principal.

    Raises:
        ValueError: If a value is missing, negative, or the sum is off.
    """
    principal = _non_negative("principal", terms.get("principal"))
    _non_negative("interestRate", terms.get("interestRate"))
    _non_negative("termYears", terms.get("termYears"))

    breakdown = terms.get("breakdown")
    if breakdown is None:
        return
    if not isinstance(breakdown, dict):
        raise ValueError("breakdown must be a mapping of contributor to amount")

    contributors = breakdown_contributors(breakdown)
    total = sum(_non_negative(f"breakdown[{k}]", v) for k, v in contributors.items())
    if contributors and abs(total - principal) > 0.005:
        raise ValueError(f"breakdown sums to {total}, principal is {principal}")


def update_financing_terms(
    account: dict[str, Any],
    principal: float | None = None,
    interest_rate: float | None = None,
    term_years: float | None = None,
    breakdown: dict[str, float] | None = None,
) -> dict[str, Any]:
    """Edit a liability's financing terms.

    ``breakdown`` entries are merged into the existing contributors and the
    principal is recomputed as their sum; a ``Total`` entry is kept equal to
    that sum.
    """
    _require_kind(account, "liability")
    updated = copy.deepcopy(account)
    terms = dict(updated.get("financingTerms") or {"principal": 0, "interestRate": 0, "termYears": 0})

    if principal is not None:
        terms["principal"] = _non_negative("principal", principal)
    if interest_rate is not None:
        terms["interestRate"] = _non_negative("interest_rate", interest_rate)
    if term_years is not None:
        terms["termYears"] = _non_negative("term_years", term_years)

    if breakdown is not None:
        if not isinstance(breakdown, dict):
            raise ValueError("breakdown must be a mapping of contributor to amount")
        edits = breakdown_contributors(breakdown)
        if not edits:
            raise ValueError("breakdown must name at least one contributor")
        # edits merge into the existing contributors
        contributors = {
            name: _non_negative(f"breakdown[{name}]", amount)
            for name, amount in {**breakdown_contributors(terms.get("breakdown") or {}), **edits}.items()
        }
        total = sum(contributors.values())
        new_breakdown = dict(contributors)
        if BREAKDOWN_TOTAL_KEY in breakdown or BREAKDOWN_TOTAL_KEY in (terms.get("breakdown") or {}):
            new_breakdown = {BREAKDOWN_TOTAL_KEY: total, **contributors}
        terms["breakdown"] = new_breakdown
        terms["principal"] = total
    elif principal is not None and terms.get("breakdown"):
        # a lone contributor tracks the principal
        contributors = breakdown_contributors(terms["breakdown"])
        if len(contributors) == 1:
            only = next(iter(contributors))
            terms["breakdown"] = {**terms["breakdown"], only: terms["principal"]}
        if BREAKDOWN_TOTAL_KEY in terms["breakdown"]:
            terms["breakdown"][BREAKDOWN_TOTAL_KEY] = terms["principal"]

    validate_financing_terms(terms)
    updated["financingTerms"] = terms
    return updated


def total_monthly_rent(account: dict[str, Any]) -> float:
    """Sum of numeric monthly rents in the latest month (``"TBD"`` counts as 0)."""
    records = account.get("monthlyRecords") or []
    if not records:
        return 0
    latest = max(records, key=lambda record: record.get("month", ""))
    return sum(
        tenant["monthlyRent"]
        for tenant in latest.get("tenants", [])
        if isinstance(tenant.get("monthlyRent"), (int, float))
        and not isinstance(tenant.get("monthlyRent"), bool)
    )


def _new_month_record(account: dict[str, Any], month: str) -> dict[str, Any]:
    """Month record built from the base roster, carrying forward last rents."""
    records = account.get("monthlyRecords") or []
    last = max(records, key=lambda record: record.get("month", "")) if records else {"tenants": []}
    last_rents = {tenant.get("id"): tenant.get("monthlyRent") for tenant in last.get("tenants", [])}
    return {
        "month": month,
        "tenants": [
            {
                "id": base["id"],
                "monthlyRent": last_rents.get(base["id"], "TBD"),
                "due": 0,
                "received": 0,
            }
            for base in account.get("baseTenants", [])
        ],
    }


def update_rent_record(
    account: dict[str, Any],
    month: str,
    tenant_id: int,
    monthly_rent: float | str | None = _UNSET,
    due: float | None = None,
    received: float | None = None,
    renter: str | None = None,
) -> dict[str, Any]:
    """Edit one tenant's entry for one month of the rent roll.

    A missing month is created from the base roster. ``monthly_rent`` of None
    or ``"TBD"`` marks the rent as to-be-determined. ``renter`` renames the
    tenant in the base roster. ``totalMonthlyRent`` is recomputed.
    """
    _require_kind(account, "revenue")
    if not MONTH_RE.match(month or ""):
        raise ValueError(f"month must be YYYY-MM, got {month!r}")

    updated = copy.deepcopy(account)
    base_ids = [base.get("id") for base in updated.get("baseTenants", [])]
    if tenant_id not in base_ids:
        raise ValueError(f"Unknown tenant id: {tenant_id}")

    if renter is not None:
        for base in updated["baseTenants"]:
            if base.get("id") == tenant_id:
                base["renter"] = renter

    records = updated.setdefault("monthlyRecords", [])
    record = next((r for r in records if r.get("month") == month), None)
    if record is None:
        record = _new_month_record(updated, month)
        records.append(record)
        records.sort(key=lambda r: r.get("month", ""))

    tenant = next((t for t in record["tenants"] if t.get("id") == tenant_id), None)
    if tenant is None:
        tenant = {"id": tenant_id, "monthlyRent": "TBD", "due": 0, "received": 0}
        record["tenants"].append(tenant)

    if monthly_rent is not _UNSET:
        if monthly_rent is None or monthly_rent == "TBD":
            tenant["monthlyRent"] = "TBD"
        else:
            tenant["monthlyRent"] = _non_negative("monthly_rent", monthly_rent)
    if due is not None:
        tenant["due"] = _non_negative("due", due)
    if received is not None:
        tenant["received"] = _non_negative("received", received)

    updated["totalMonthlyRent"] = total_monthly_rent(updated)
    return updated


def total_equity(accounts: dict[str, dict[str, Any]]) -> dict[str, float]:
    """Total assets minus total liabilities. Null balances are skipped."""
    assets = 0.0
    liabilities = 0.0
    for account in accounts.values():
        balance = account.get("balance")
        if balance is None or isinstance(balance, bool) or not isinstance(balance, (int, float)):
            continue
        if account.get("type") == "asset":
            assets += balance
        elif account.get("type") == "liability":
            liabilities += balance
    return {
        "total_assets": assets,
        "total_liabilities": liabilities,
        "total_equity": assets - liabilities,
    }
