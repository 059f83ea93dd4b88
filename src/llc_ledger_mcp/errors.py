"""Exceptions shared by the fetcher, sync engine and editors."""


class SyncError(Exception):
    """Fatal error while loading accounts (e.g. the account list is unavailable)."""

    pass


class StoreNotInitializedError(SyncError):
    """Save attempted before any load established a persisted store."""

    pass


class UnknownSlotError(ValueError):
    """Slot id is not one of the fixed internal account slots."""

    pass


class ProviderError(Exception):
    """Non-2xx response from the bank data provider."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404
