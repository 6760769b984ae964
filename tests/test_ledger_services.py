from decimal import Decimal

import pytest

from splitledger.core.exceptions import ValidationError
from splitledger.db.balance_store import list_open_balances
from splitledger.services.ledger_services import (
    apply_share,
    has_unsettled_balances,
    net_position,
    open_balances_for,
    reverse_expense,
)
from splitledger.services.payment_services import record_payment

A, B, C, D = 1, 2, 3, 4
GROUP = 10


async def test_same_pair_merges_into_one_open_balance(db):
    await apply_share(db, B, A, GROUP, Decimal("22.50"), "USD", expense_id=1)
    await apply_share(db, B, A, GROUP, Decimal("22.50"), "USD", expense_id=2)

    balances = await list_open_balances(db, group_id=GROUP)
    assert len(balances) == 1
    balance = balances[0]
    assert (balance.debtor_id, balance.creditor_id) == (B, A)
    assert balance.amount == Decimal("45.00")
    assert balance.status == "pending"
    assert balance.expense_ids == [1, 2]


async def test_payer_share_and_zero_share_write_nothing(db):
    assert await apply_share(db, A, A, GROUP, Decimal("22.50"), "USD", expense_id=1) is None
    assert await apply_share(db, B, A, GROUP, Decimal("0"), "USD", expense_id=1) is None

    assert await list_open_balances(db, group_id=GROUP) == []


async def test_opposite_directions_are_not_netted(db):
    await apply_share(db, A, B, GROUP, Decimal("10"), "USD", expense_id=1)
    await apply_share(db, B, A, GROUP, Decimal("4"), "USD", expense_id=2)

    balances = await list_open_balances(db, group_id=GROUP)
    assert [(b.debtor_id, b.creditor_id, b.amount) for b in balances] == [
        (A, B, Decimal("10.00")),
        (B, A, Decimal("4.00")),
    ]
    assert await net_position(db, A, GROUP) == Decimal("-6.00")
    assert await net_position(db, B, GROUP) == Decimal("6.00")


async def test_groups_are_kept_apart(db):
    await apply_share(db, B, A, GROUP, Decimal("5"), "USD", expense_id=1)
    await apply_share(db, B, A, GROUP + 1, Decimal("7"), "USD", expense_id=2)

    assert len(await list_open_balances(db, user_id=B)) == 2
    assert await net_position(db, A, GROUP) == Decimal("5.00")


async def test_currency_mismatch_is_rejected(db):
    await apply_share(db, B, A, GROUP, Decimal("10"), "USD", expense_id=1)

    with pytest.raises(ValidationError) as e:
        await apply_share(db, B, A, GROUP, Decimal("10"), "EUR", expense_id=2)
    assert e.value.field == "currency"


async def test_currency_code_case_does_not_split_a_balance(db):
    await apply_share(db, B, A, GROUP, Decimal("10"), "USD", expense_id=1)
    balance = await apply_share(db, B, A, GROUP, Decimal("5"), "usd", expense_id=2)

    assert balance.amount == Decimal("15.00")
    assert balance.currency == "USD"


async def test_new_debt_after_settlement_opens_fresh_balance(db):
    first = await apply_share(db, B, A, GROUP, Decimal("10"), "USD", expense_id=1)
    await db.commit()
    await record_payment(db, B, A, GROUP, Decimal("10"), "cash")

    second = await apply_share(db, B, A, GROUP, Decimal("3"), "USD", expense_id=2)

    assert second.id != first.id
    assert first.status == "paid"
    assert second.status == "pending"
    assert second.expense_ids == [2]


async def test_open_balances_for_splits_owe_and_owed(db):
    await apply_share(db, A, B, GROUP, Decimal("10"), "USD", expense_id=1)
    await apply_share(db, C, A, GROUP, Decimal("5"), "USD", expense_id=2)
    await apply_share(db, A, D, GROUP + 1, Decimal("3"), "USD", expense_id=3)

    view = await open_balances_for(db, A)
    assert [b.creditor_id for b in view.you_owe] == [B, D]
    assert [b.debtor_id for b in view.you_are_owed] == [C]
    assert view.total_owed == Decimal("13.00")
    assert view.total_due == Decimal("5.00")

    in_group = await open_balances_for(db, A, group_id=GROUP)
    assert in_group.total_owed == Decimal("10.00")


async def test_has_unsettled_balances(db):
    assert not await has_unsettled_balances(db, B, GROUP)
    await apply_share(db, B, A, GROUP, Decimal("1"), "USD", expense_id=1)
    assert await has_unsettled_balances(db, A, GROUP)
    assert await has_unsettled_balances(db, B, GROUP)


async def test_reverse_expense_takes_its_share_back_out(db):
    await apply_share(db, B, A, GROUP, Decimal("10"), "USD", expense_id=1)
    await apply_share(db, B, A, GROUP, Decimal("5"), "USD", expense_id=2)

    await reverse_expense(db, 1)
    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("5.00")
    assert balance.expense_ids == [2]

    await reverse_expense(db, 2)
    assert await list_open_balances(db, group_id=GROUP) == []


async def test_reverse_after_partial_payment_closes_balance(db):
    balance = await apply_share(db, B, A, GROUP, Decimal("10"), "USD", expense_id=1)
    await apply_share(db, B, A, GROUP, Decimal("5"), "USD", expense_id=2)
    await db.commit()
    await record_payment(db, B, A, GROUP, Decimal("12"))
    assert balance.status == "partial"

    await reverse_expense(db, 1)

    assert balance.status == "paid"
    assert balance.amount == Decimal("0")
    assert balance.expense_ids == [2]
    assert await list_open_balances(db, group_id=GROUP) == []
