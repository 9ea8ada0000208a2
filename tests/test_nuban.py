"""Tests for NUBAN check-digit validation and bank candidate detection."""

import pytest

from voxpay.banks.catalog import BANK_CATALOG, FINTECH_FALLBACK_CODES
from voxpay.banks.resolver import build_account_number, checksum_valid, detect_candidates
from voxpay.exceptions import ValidationError


def test_known_gtbank_account_number_is_valid():
    # 058 + 012345678 weighted with 3,7,3,... sums to 215 -> check digit 5
    assert checksum_valid("0123456785", "058")


def test_wrong_check_digit_is_invalid():
    assert not checksum_valid("0123456789", "058")


@pytest.mark.parametrize("account_number", ["012345678", "01234567851", "01234S6785", "", None])
def test_malformed_numbers_are_invalid(account_number):
    assert not checksum_valid(account_number, "058")


def test_build_account_number_appends_check_digit():
    assert build_account_number("058", "012345678") == "0123456785"


def test_build_account_number_rejects_short_serial():
    with pytest.raises(ValidationError):
        build_account_number("058", "12345")


def test_weights_cycle_for_long_institution_codes():
    # five- and six-digit codes give serials longer than the weight table
    for code in ("50211", "999992"):
        number = build_account_number(code, "801234567")
        assert checksum_valid(number, code)


def test_detect_candidates_includes_issuing_bank_in_catalog_order():
    number = build_account_number("057", "223344556")
    candidates = detect_candidates(number)

    assert "057" in [c.code for c in candidates]
    catalog_order = [e.code for e in BANK_CATALOG]
    positions = [catalog_order.index(c.code) for c in candidates]
    assert positions == sorted(positions)


def test_detect_candidates_rejects_wrong_length():
    assert detect_candidates("12345") == []


def test_catalog_lookups():
    assert BANK_CATALOG.by_code("058").name == "Guaranty Trust Bank"
    assert BANK_CATALOG.by_code("000") is None
    assert BANK_CATALOG.name_for("999992") == "OPay"
    assert FINTECH_FALLBACK_CODES == ("999992", "999991")


def test_any_single_digit_change_breaks_checksum():
    number = build_account_number("058", "012345678")
    for position in range(10):
        for replacement in "0123456789":
            if replacement == number[position]:
                continue
            mutated = number[:position] + replacement + number[position + 1:]
            assert not checksum_valid(mutated, "058")
