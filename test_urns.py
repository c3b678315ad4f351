"""
Tests for tel URN normalization.
"""

import pytest

from blackmyna.urns import URN, new_tel_urn_for_country, normalize_number


class TestNormalizeNumber:

    @pytest.mark.parametrize("number,country,expected", [
        ("15551234567", "US", "+15551234567"),
        ("5551234567", "US", "+15551234567"),
        ("+1 (555) 123-4567", "US", "+15551234567"),
        ("+447911123456", "US", "+447911123456"),
        ("07911123456", "GB", "+447911123456"),
        ("447911123456", "GB", "+447911123456"),
        ("9801234567", "NP", "+9779801234567"),
        ("9779801234567", "NP", "+9779801234567"),
        ("9123456789", "IN", "+919123456789"),
        ("0788383383", "RW", "+250788383383"),
        ("15551234567", "us", "+15551234567"),
    ])
    def test_country_numbers(self, number, country, expected):
        assert normalize_number(number, country) == expected

    @pytest.mark.parametrize("number,country,expected", [
        # national trunk prefixes are dropped
        ("89161234567", "RU", "+79161234567"),
        ("05321234567", "TR", "+905321234567"),
        ("0612345678", "NL", "+31612345678"),
        ("0412345678", "AU", "+61412345678"),
    ])
    def test_any_country_resolved(self, number, country, expected):
        assert normalize_number(number, country) == expected

    def test_foreign_number_on_local_channel(self):
        # a UK mobile without '+' reaching a US channel keeps its own country code
        assert normalize_number("447911123456", "US") == "+447911123456"

    @pytest.mark.parametrize("number", ["8080", "2020", "12345"])
    def test_short_codes_untouched(self, number):
        assert normalize_number(number, "US") == number

    def test_alphanumeric_sender(self):
        assert normalize_number("MyBank", "US") == "MyBank"

    def test_unknown_country(self):
        assert normalize_number("250788383383", "") == "+250788383383"
        assert normalize_number("0788383", "XX") == "0788383"

    def test_deterministic(self):
        results = {normalize_number("5551234567", "US") for _ in range(5)}
        assert results == {"+15551234567"}


class TestURN:

    def test_tel_urn_for_country(self):
        urn = new_tel_urn_for_country("15551234567", "US")

        assert urn == URN("tel", "+15551234567")
        assert str(urn) == "tel:+15551234567"
        assert urn.path == "+15551234567"

    def test_tel_urn_for_national_number(self):
        assert str(new_tel_urn_for_country("89161234567", "RU")) == "tel:+79161234567"

    def test_urn_is_stored_as_text(self):
        urn = URN("tel", "+9779801234567")

        assert f"{urn}" == "tel:+9779801234567"
        with pytest.raises(AttributeError):
            urn.path = "+15551234567"
