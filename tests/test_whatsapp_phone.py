"""Tests for WhatsApp address candidates."""

import pytest

from src.whatsapp.phone import candidate_addresses, clean_digits


def test_clean_digits() -> None:
    assert clean_digits("+55 (15) 99177-5589") == "5515991775589"
    assert clean_digits("") == ""


def test_domestic_mobile_with_extra_digit() -> None:
    assert candidate_addresses("15991775589") == [
        "5515991775589@c.us",
        "551591775589@c.us",
    ]


def test_domestic_without_extra_digit() -> None:
    assert candidate_addresses("1591775589") == [
        "5515991775589@c.us",
        "551591775589@c.us",
    ]


@pytest.mark.parametrize("contact", ["5515991775589", "+55 15 99177-5589", "551591775589"])
def test_country_code_is_recognised(contact: str) -> None:
    assert candidate_addresses(contact) == [
        "5515991775589@c.us",
        "551591775589@c.us",
    ]


@pytest.mark.parametrize("contact", ["15891775589", "5515891775589", "(15) 89177-5589"])
def test_eleven_digits_without_mobile_digit_gets_country_code(contact: str) -> None:
    assert candidate_addresses(contact) == ["5515891775589@c.us"]


def test_existing_address_passes_through() -> None:
    assert candidate_addresses("5515991775589@c.us") == ["5515991775589@c.us"]


def test_unexpected_length_single_candidate() -> None:
    assert candidate_addresses("12025550123456") == ["12025550123456@c.us"]


def test_no_digits() -> None:
    assert candidate_addresses("n/a") == []
    assert candidate_addresses("") == []


def test_custom_country_code() -> None:
    assert candidate_addresses("1591775589", country_code="351") == [
        "35115991775589@c.us",
        "3511591775589@c.us",
    ]
