from __future__ import annotations

import pytest

from app.scraping.errors import InvalidFormatError, InvalidInputError
from app.scraping.identifiers import is_valid_asin, unique_identifiers, validate_identifiers


class TestIsValidAsin:
    @pytest.mark.parametrize("value", ["B0ABCDEFGH", "0123456789", "ZZZZZZZZZZ"])
    def test_accepts_ten_uppercase_alphanumerics(self, value: str) -> None:
        assert is_valid_asin(value)

    @pytest.mark.parametrize(
        "value",
        ["b0abcdefgh", "B0ABCDEFG", "B0ABCDEFGHI", "B0ABC-EFGH", "", None, 1234567890],
    )
    def test_rejects_everything_else(self, value: object) -> None:
        assert not is_valid_asin(value)


class TestValidateIdentifiers:
    def test_empty_submission_is_invalid_input(self) -> None:
        with pytest.raises(InvalidInputError):
            validate_identifiers([])

    def test_none_submission_is_invalid_input(self) -> None:
        with pytest.raises(InvalidInputError):
            validate_identifiers(None)

    def test_duplicates_collapse_in_first_seen_order(self) -> None:
        assert validate_identifiers(["B0BBBBBBBB", "B0AAAAAAAA", "B0BBBBBBBB"]) == [
            "B0BBBBBBBB",
            "B0AAAAAAAA",
        ]

    def test_format_error_names_every_offender_once(self) -> None:
        with pytest.raises(InvalidFormatError) as exc_info:
            validate_identifiers(["B0AAAAAAAA", "bad", None, "bad", "short"])

        assert exc_info.value.identifiers == ["bad", None, "short"]
        message = str(exc_info.value)
        assert "bad" in message
        assert "short" in message

    def test_unique_identifiers_keeps_none(self) -> None:
        assert unique_identifiers([None, "A", None]) == [None, "A"]
