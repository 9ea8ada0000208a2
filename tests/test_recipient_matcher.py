"""Tests for name-based recipient search."""

import pytest

from voxpay.recipients import RecipientMatcher, RecipientOrigin


@pytest.mark.asyncio
async def test_merges_sources_beneficiaries_first(matcher, seeder):
    me = await seeder.customer("Ada Obi")
    my_account = await seeder.account(me, "0100000001", "1000.00")
    await seeder.beneficiary(me, "Sarah Mohammed", "0211114521", usage_count=1)
    await seeder.beneficiary(me, "Sarah M. Mohammed", "0222229876", usage_count=5)
    sarah = await seeder.customer("Sarah Mohammed")
    await seeder.account(sarah, "0300001234")
    await seeder.past_transfer(my_account, "Sarah Mohammed Bello", "0455550001")

    results = await matcher.search(me.customer_id, "sarah")

    assert [r.origin for r in results] == [
        RecipientOrigin.BENEFICIARY,
        RecipientOrigin.BENEFICIARY,
        RecipientOrigin.CUSTOMER,
        RecipientOrigin.HISTORY,
    ]
    # most used beneficiary first
    assert results[0].last4 == "9876"
    assert results[2].customer_id == sarah.customer_id


@pytest.mark.asyncio
async def test_deduplicates_on_account_and_bank_first_wins(matcher, seeder):
    me = await seeder.customer("Ada Obi")
    my_account = await seeder.account(me, "0100000001", "1000.00")
    await seeder.beneficiary(me, "John Doe", "0123456785", bank_name="Zenith Bank")
    await seeder.past_transfer(my_account, "John Doe", "0123456785", counterparty_bank="Zenith Bank")
    await seeder.past_transfer(my_account, "John Doe", "0123456785", counterparty_bank="Access Bank")

    results = await matcher.search(me.customer_id, "john")

    assert [(r.account_number, r.bank_name, r.origin) for r in results] == [
        ("0123456785", "Zenith Bank", RecipientOrigin.BENEFICIARY),
        ("0123456785", "Access Bank", RecipientOrigin.HISTORY),
    ]


@pytest.mark.asyncio
async def test_excludes_requesting_customer_and_external_sink(matcher, seeder, ledger):
    me = await seeder.customer("External Tester")
    await seeder.account(me, "0100000001")
    await ledger.ensure_external_sink()

    assert await matcher.search(me.customer_id, "external") == []


@pytest.mark.asyncio
async def test_customers_without_accounts_are_skipped(matcher, seeder):
    me = await seeder.customer("Ada Obi")
    await seeder.customer("Musa Bello")

    assert await matcher.search(me.customer_id, "musa") == []


@pytest.mark.asyncio
async def test_blank_pattern_returns_nothing(matcher, seeder):
    me = await seeder.customer("Ada Obi")
    assert await matcher.search(me.customer_id, "   ") == []


@pytest.mark.asyncio
async def test_results_are_capped(session_factory, seeder):
    me = await seeder.customer("Ada Obi")
    for i in range(5):
        await seeder.beneficiary(me, f"Tunde {i}", f"05000000{i:02d}")

    results = await RecipientMatcher(session_factory, limit=3).search(me.customer_id, "tunde")

    assert len(results) == 3


@pytest.mark.asyncio
async def test_like_wildcards_are_literal(matcher, seeder):
    me = await seeder.customer("Ada Obi")
    await seeder.beneficiary(me, "Chidi Okafor", "0600000001")

    assert await matcher.search(me.customer_id, "%") == []


@pytest.mark.asyncio
async def test_cap_counts_only_customers_with_accounts(session_factory, seeder):
    me = await seeder.customer("Ada Obi")
    await seeder.customer("Musa Bello")
    musa_two = await seeder.customer("Musa Bello")
    await seeder.account(musa_two, "0200001234")

    results = await RecipientMatcher(session_factory, limit=1).search(me.customer_id, "musa")

    assert [r.account_number for r in results] == ["0200001234"]
