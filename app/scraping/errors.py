"""
Exceptions raised by scrape orchestration, the provider client and the store.
"""

from __future__ import annotations

from collections.abc import Sequence


class ScrapeError(Exception):
    """Base exception for scrape orchestration failures."""


class InvalidInputError(ScrapeError):
    """Raised when a submission carries no identifiers."""


class InvalidFormatError(ScrapeError):
    """Raised when one or more identifiers are not valid ASINs."""

    def __init__(self, identifiers: Sequence[str | None]) -> None:
        self.identifiers = list(identifiers)
        rendered = ", ".join(repr(item) if not item else item for item in self.identifiers)
        super().__init__(
            f"Invalid ASIN format: {rendered}. ASINs must be 10 characters long "
            "and contain only uppercase letters and numbers."
        )


class AlreadyInFlightError(ScrapeError):
    """Raised when identifiers are already claimed by an active task."""

    def __init__(self, identifiers: Sequence[str]) -> None:
        self.identifiers = list(identifiers)
        super().__init__(
            f"Some ASINs are already being processed: {', '.join(self.identifiers)}. "
            "Please wait for the current process to complete before trying again."
        )


class ProviderError(ScrapeError):
    """Raised when the external scrape provider cannot be reached or rejects a call."""


class EmptyResultsError(ScrapeError):
    """Raised when a succeeded run returns no usable result records."""


class SubjectNotFoundError(ScrapeError):
    """Raised when the product to reconcile into does not exist in the store."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Product not found for ASIN {identifier}")


class StoreError(ScrapeError):
    """Raised when the product store fails to read or persist."""
