"""
ASIN validation helpers.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from app.scraping.errors import InvalidFormatError, InvalidInputError

ASIN_PATTERN = re.compile(r"^[A-Z0-9]{10}$")


def is_valid_asin(value: object) -> bool:
    return isinstance(value, str) and ASIN_PATTERN.fullmatch(value) is not None


def unique_identifiers(identifiers: Iterable[str | None]) -> list[str | None]:
    """
    Drop duplicates while keeping first-seen order.
    """

    return list(dict.fromkeys(identifiers))


def validate_identifiers(identifiers: Sequence[str | None] | None) -> list[str]:
    """
    Deduplicate and validate a submission.

    Raises InvalidInputError for an empty submission and InvalidFormatError
    naming every malformed identifier.
    """

    if not identifiers:
        raise InvalidInputError("Please provide at least one ASIN to scrape.")

    unique = unique_identifiers(identifiers)
    invalid = [item for item in unique if not is_valid_asin(item)]
    if invalid:
        raise InvalidFormatError(invalid)
    return [item for item in unique if item is not None]
