"""Tests for the raw-text fallback parser and selection matching."""

from decimal import Decimal

import pytest

from voxpay.nlu import ParsedRequest, match_selection, parse_transfer_message


@pytest.mark.parametrize("text,amount", [
    ("Send 10000 to Sarah Mohammed", Decimal("10000")),
    ("Send 10,000 to Sarah Mohammed", Decimal("10000")),
    ("send ₦2,500.50 to Sarah Mohammed", Decimal("2500.50")),
    ("Send 5k to 0123456785", Decimal("5000")),
])
def test_amounts(text, amount):
    assert parse_transfer_message(text).amount == amount


def test_name_recipient():
    parsed = parse_transfer_message("Send 10000 to Sarah Mohammed")
    assert parsed.recipient_name == "Sarah Mohammed"
    assert parsed.account_number is None
    assert parsed.confidence == 0.5


def test_account_number_is_not_an_amount():
    parsed = parse_transfer_message("Send 5000 to 0123456785")
    assert parsed.account_number == "0123456785"
    assert parsed.amount == Decimal("5000")
    assert parsed.recipient_name is None


def test_account_endings():
    parsed = parse_transfer_message("Move 2500 from my account ending 1111 to account ending 2222")
    assert parsed.source_account_ending == "1111"
    assert parsed.target_account_ending == "2222"
    assert parsed.amount == Decimal("2500")


def test_nothing_recognised():
    parsed = parse_transfer_message("hello there")
    assert parsed.amount is None
    assert parsed.account_number is None


def test_parsed_request_blanks_become_none():
    parsed = ParsedRequest(recipient_name="  ", account_number="")
    assert parsed.recipient_name is None
    assert parsed.account_number is None


@pytest.mark.parametrize("reply,expected", [
    ("2222", 1),
    ("the one ending in 1111", 0),
    ("second", 1),
    ("Second one please", 1),
    ("2", 1),
    ("last", 1),
    ("first", 0),
])
def test_match_selection(reply, expected):
    assert match_selection(reply, ["1111", "2222"]) == expected


@pytest.mark.parametrize("reply", ["", "12345", "7", "fifth", "neither"])
def test_match_selection_rejects(reply):
    assert match_selection(reply, ["1111", "2222"]) is None
