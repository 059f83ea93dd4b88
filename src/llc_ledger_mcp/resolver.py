"""Map provider account records onto the fixed internal account slots.

Provider records identify accounts inconsistently (ids, names, last four
digits, institution metadata), so resolution runs an ordered list of
strategies and the first match wins:

1. operator override map (configuration)
2. built-in provider id map
3. display name / subtitle
4. last four digits
5. institution + checking/savings subtype, evaluated over the whole batch

Records that match nothing are dropped with a warning.
"""

from typing import Any, Iterable

import structlog

from .catalog import default_accounts
from .config import Settings, parse_account_overrides


logger = structlog.get_logger(__name__)


IDENTITY_KEYS = ("id", "account_id", "provider_account_id", "teller_account_id")
DESCRIPTIVE_KEYS = ("name", "official_name", "subtitle")
LAST_FOUR_KEYS = ("last_four", "lastFour", "mask")

# Provider ids served by the static/demo dataset
BUILTIN_ID_MAP = {
    "acc_julie_personal": "juliePersonalFinances",
    "acc_david_personal": "davidPersonalFinances",
    "acc_llc_checking": "llcBank",
    "acc_llc_savings": "llcSavings",
    "acc_heloc_loan": "helocLoan",
    "acc_member_loan_roof": "memberLoan",
    "acc_mortgage_loan": "mortgageLoan",
    "acc_property_asset": "propertyAsset",
    "acc_rent_roll": "rent",
}

STATIC_ACCOUNT_IDS = frozenset(BUILTIN_ID_MAP)

NAME_ALIASES = {
    "llc bank": "llcBank",
    "llc business checking": "llcBank",
    "llc business savings": "llcSavings",
    "heloc": "helocLoan",
    "member loan": "memberLoan",
    "roof loan": "memberLoan",
    "mortgage": "mortgageLoan",
}

LAST_FOUR_MAP = {
    "7123": "llcBank",
    "7124": "llcSavings",
}

KNOWN_INSTITUTIONS = {
    "td bank": ("td bank", "tdbank", "td_bank", "td-bank"),
}

SUBTYPE_SLOTS = {
    "checking": "llcBank",
    "savings": "llcSavings",
}


def normalize(value: Any) -> str | None:
    """Trim and case-fold a string; anything else (or blank) yields None."""
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    return key or None


def _unwrap(value: Any, keys: Iterable[str] = ("name",)) -> str | None:
    """Normalize a string, or a mapping's first string value among ``keys``."""
    if isinstance(value, dict):
        for key in keys:
            unwrapped = normalize(value.get(key))
            if unwrapped:
                return unwrapped
        return None
    return normalize(value)


def _dedupe(values: Iterable[str | None]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def identity_candidates(record: dict[str, Any]) -> list[str]:
    """Collect normalized identity strings from top level and ``metadata``."""
    sources = [record]
    metadata = record.get("metadata")
    if isinstance(metadata, dict):
        sources.append(metadata)
    return _dedupe(normalize(src.get(key)) for src in sources for key in IDENTITY_KEYS)


def descriptive_candidates(record: dict[str, Any]) -> list[str]:
    """Collect normalized name/official name/subtitle, unwrapping ``{name: ...}``."""
    return _dedupe(_unwrap(record.get(key)) for key in DESCRIPTIVE_KEYS)


def last_four_candidates(record: dict[str, Any]) -> list[str]:
    sources = [record]
    metadata = record.get("metadata")
    if isinstance(metadata, dict):
        sources.append(metadata)
    return _dedupe(normalize(src.get(key)) for src in sources for key in LAST_FOUR_KEYS)


def describe(record: dict[str, Any]) -> dict[str, Any]:
    """Small identifying context for log events."""
    return {
        "account_id": record.get("id"),
        "account_name": _unwrap(record.get("name")),
    }


def _catalog_name_map() -> dict[str, str]:
    """Catalog display names plus subtitles that identify exactly one slot."""
    names: dict[str, str] = {}
    subtitles: dict[str, list[str]] = {}
    for slot_id, seed in default_accounts().items():
        names[normalize(seed["name"])] = slot_id
        subtitles.setdefault(normalize(seed["subtitle"]), []).append(slot_id)
    for subtitle, slots in subtitles.items():
        if len(slots) == 1:
            names.setdefault(subtitle, slots[0])
    for alias, slot_id in NAME_ALIASES.items():
        names.setdefault(alias, slot_id)
    return names


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class ResolutionStrategy:
    """Maps a single record to a slot, or None when it does not apply."""

    name = "strategy"

    def match(self, record: dict[str, Any]) -> str | None:
        raise NotImplementedError


class LookupStrategy(ResolutionStrategy):
    """Exact lookup of normalized candidates in a fixed table."""

    def __init__(self, name: str, table: dict[str, str]):
        self.name = name
        self.table = {normalize(key): slot_id for key, slot_id in table.items() if normalize(key)}

    def candidates(self, record: dict[str, Any]) -> list[str]:
        raise NotImplementedError

    def match(self, record: dict[str, Any]) -> str | None:
        for candidate in self.candidates(record):
            slot_id = self.table.get(candidate)
            if slot_id:
                return slot_id
        return None


class IdMapStrategy(LookupStrategy):
    def candidates(self, record: dict[str, Any]) -> list[str]:
        return identity_candidates(record)


class NameStrategy(LookupStrategy):
    def candidates(self, record: dict[str, Any]) -> list[str]:
        return descriptive_candidates(record)


class LastFourStrategy(LookupStrategy):
    def candidates(self, record: dict[str, Any]) -> list[str]:
        return last_four_candidates(record)


class InstitutionSubtypeStrategy:
    """Fallback: known institution + checking/savings semantics.

    Applied across all still-unresolved records of a batch. Each target slot
    is claimed by at most one record, the first in input order.
    """

    name = "institution_subtype"

    def __init__(
        self,
        institutions: dict[str, tuple[str, ...]] | None = None,
        subtype_slots: dict[str, str] | None = None,
    ):
        self.institutions = institutions if institutions is not None else KNOWN_INSTITUTIONS
        self.subtype_slots = subtype_slots if subtype_slots is not None else SUBTYPE_SLOTS

    def institution_of(self, record: dict[str, Any]) -> str | None:
        values = [
            _unwrap(record.get("institution"), ("name", "id")),
            normalize(record.get("institution_name")),
            _unwrap(record.get("provider"), ("name", "id")),
            *identity_candidates(record),
        ]
        for value in values:
            if not value:
                continue
            for institution, tokens in self.institutions.items():
                if any(token in value for token in tokens):
                    return institution
        return None

    def subtype_of(self, record: dict[str, Any]) -> str | None:
        values = [
            normalize(record.get("subtype")),
            normalize(record.get("type")),
            _unwrap(record.get("account_type"), ("name", "subtype")),
            *descriptive_candidates(record),
        ]
        for value in values:
            if not value:
                continue
            for subtype in self.subtype_slots:
                if subtype in value:
                    return subtype
        return None

    def qualify(self, record: dict[str, Any]) -> str | None:
        """Slot the record would claim, ignoring other records."""
        if self.institution_of(record) is None:
            return None
        subtype = self.subtype_of(record)
        return self.subtype_slots.get(subtype) if subtype else None

    def assign(
        self,
        records: list[dict[str, Any]],
        indexes: list[int],
        claimed: set[str],
    ) -> dict[int, str]:
        """Assign slots to the unresolved records at ``indexes``.

        Args:
            records: Full batch, in input order.
            indexes: Positions of records still unresolved.
            claimed: Slots already taken by direct matches in this batch.

        Returns:
            Mapping of record position to claimed slot.
        """
        taken = set(claimed)
        assigned: dict[int, str] = {}
        for index in indexes:
            slot_id = self.qualify(records[index])
            if slot_id is None:
                continue
            if slot_id in taken:
                logger.warning(
                    "institution_claim_lost",
                    slot_id=slot_id,
                    **describe(records[index]),
                )
                continue
            taken.add(slot_id)
            assigned[index] = slot_id
        return assigned


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class Resolver:
    """Ordered strategy chain plus the batch-level institution fallback."""

    def __init__(
        self,
        overrides: dict[str, str] | None = None,
        strategies: list[ResolutionStrategy] | None = None,
        fallback: InstitutionSubtypeStrategy | None = None,
    ):
        if strategies is None:
            strategies = [
                IdMapStrategy("override", overrides or {}),
                IdMapStrategy("builtin_id", BUILTIN_ID_MAP),
                NameStrategy("name", _catalog_name_map()),
                LastFourStrategy("last_four", LAST_FOUR_MAP),
            ]
        self.strategies = strategies
        self.fallback = fallback if fallback is not None else InstitutionSubtypeStrategy()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Resolver":
        return cls(overrides=parse_account_overrides(settings.account_overrides))

    def match_direct(self, record: dict[str, Any]) -> str | None:
        """Run strategies 1-4 on one record."""
        for strategy in self.strategies:
            slot_id = strategy.match(record)
            if slot_id:
                return slot_id
        return None

    def resolve(self, record: dict[str, Any]) -> str | None:
        """Resolve a single record as a batch of one."""
        return self.resolve_batch([record])[0]

    def resolve_batch(self, records: list[dict[str, Any]]) -> list[str | None]:
        """Resolve every record; result is aligned with the input order."""
        results: list[str | None] = [self.match_direct(record) for record in records]

        unresolved = [i for i, slot_id in enumerate(results) if slot_id is None]
        if unresolved:
            claimed = {slot_id for slot_id in results if slot_id}
            for index, slot_id in self.fallback.assign(records, unresolved, claimed).items():
                results[index] = slot_id

        for record, slot_id in zip(records, results):
            if slot_id is None:
                logger.warning("account_unresolved", **describe(record))
        return results
