from decimal import Decimal

import pytest
from sqlalchemy import func, select

from splitledger.core.exceptions import ConcurrencyError, NotFoundError, ValidationError
from splitledger.db.balance_store import list_open_balances
from splitledger.models.expense import Expense
from splitledger.schemas.expense import ExpenseCreate, ExpenseUpdate, SplitPreview
from splitledger.schemas.split import EqualSplit, ItemizedSplit, LineItem, PercentageSplit, Surcharge
from splitledger.services.expense_services import (
    create_expense,
    delete_expense,
    edit_expense,
    get_expense_by_id,
    preview_splits,
)
from splitledger.services.ledger_services import apply_share
from splitledger.services.payment_services import record_payment

A, B, C = 1, 2, 3
GROUP = 10


def dinner(amount="45.00", participants=(A, B), split=None, **kw):
    return ExpenseCreate(
        group_id=GROUP,
        paid_by=A,
        amount=Decimal(amount),
        participants=list(participants),
        split=split or EqualSplit(),
        **kw,
    )


def pairs(balances):
    return [(b.debtor_id, b.creditor_id, b.amount) for b in balances]


async def test_create_expense_records_splits_and_balances(db):
    expense = await create_expense(db, dinner("30.00", participants=(A, B, C), description="pizza"))

    assert expense.id is not None
    assert expense.currency == "USD"
    assert expense.split_method == "equal"
    assert [(s.user_id, s.amount) for s in expense.splits] == [
        (A, Decimal("10.00")), (B, Decimal("10.00")), (C, Decimal("10.00")),
    ]

    balances = await list_open_balances(db, group_id=GROUP)
    assert pairs(balances) == [(B, A, Decimal("10.00")), (C, A, Decimal("10.00"))]
    assert all(b.expense_ids == [expense.id] for b in balances)


async def test_two_expenses_share_one_balance(db):
    first = await create_expense(db, dinner())
    second = await create_expense(db, dinner("10.00"))

    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("27.50")
    assert balance.expense_ids == [first.id, second.id]


async def test_invalid_split_writes_nothing(db):
    bad = dinner(split=PercentageSplit(percentages={A: Decimal("60"), B: Decimal("60")}))

    with pytest.raises(ValidationError):
        await create_expense(db, bad)

    res = await db.execute(select(func.count(Expense.id)))
    assert res.scalar() == 0
    assert await list_open_balances(db, group_id=GROUP) == []


async def test_preview_does_not_persist(db):
    preview = preview_splits(SplitPreview(amount=Decimal("10"), participants=[A, B, C], split=EqualSplit()))

    assert preview.total == Decimal("9.99")
    assert len(preview.splits) == 3
    res = await db.execute(select(func.count(Expense.id)))
    assert res.scalar() == 0


async def test_edit_expense_regenerates_splits(db):
    expense = await create_expense(db, dinner())

    edited = await edit_expense(db, expense.id, ExpenseUpdate(
        amount=Decimal("60"),
        participants=[A, B, C],
        split=EqualSplit(),
        description="bigger dinner",
    ))

    assert edited.amount == Decimal("60.00")
    assert edited.description == "bigger dinner"
    assert [s.user_id for s in edited.splits] == [A, B, C]
    balances = await list_open_balances(db, group_id=GROUP)
    assert pairs(balances) == [(B, A, Decimal("20.00")), (C, A, Decimal("20.00"))]


async def test_edit_with_bad_split_keeps_old_state(db):
    expense = await create_expense(db, dinner())

    with pytest.raises(ValidationError):
        await edit_expense(db, expense.id, ExpenseUpdate(amount=Decimal("-1"), participants=[A, B], split=EqualSplit()))

    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("22.50")


async def test_delete_expense_reverses_balances(db):
    kept = await create_expense(db, dinner("10.00"))
    dropped = await create_expense(db, dinner())

    assert await delete_expense(db, dropped.id) == {"status": "deleted"}

    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("5.00")
    assert balance.expense_ids == [kept.id]

    with pytest.raises(NotFoundError):
        await get_expense_by_id(db, dropped.id)


async def test_missing_expense(db):
    with pytest.raises(NotFoundError):
        await delete_expense(db, 404)


def same_dinner(amount="45.00"):
    return ExpenseUpdate(amount=Decimal(amount), participants=[A, B], split=EqualSplit())


async def test_unchanged_edit_after_partial_payment_keeps_what_was_paid(db):
    expense = await create_expense(db, dinner())
    await record_payment(db, B, A, GROUP, Decimal("10"))

    await edit_expense(db, expense.id, same_dinner())

    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("12.50")
    assert balance.status == "partial"


async def test_unchanged_edit_after_full_payment_owes_nothing(db):
    expense = await create_expense(db, dinner())
    await record_payment(db, B, A, GROUP, Decimal("22.50"))

    await edit_expense(db, expense.id, same_dinner())

    assert await list_open_balances(db, group_id=GROUP) == []


async def test_raising_an_expense_after_partial_payment_adds_only_the_difference(db):
    expense = await create_expense(db, dinner())
    await record_payment(db, B, A, GROUP, Decimal("10"))

    await edit_expense(db, expense.id, same_dinner("65.00"))

    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("22.50")
    assert balance.status == "partial"


async def test_raising_a_settled_expense_opens_a_balance_for_the_difference(db):
    expense = await create_expense(db, dinner())
    await record_payment(db, B, A, GROUP, Decimal("22.50"))

    await edit_expense(db, expense.id, same_dinner("65.00"))

    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("10.00")
    assert balance.status == "pending"
    assert balance.expense_ids == [expense.id]


async def test_dropping_a_partly_paid_debtor_closes_their_balance(db):
    expense = await create_expense(db, dinner())
    await record_payment(db, B, A, GROUP, Decimal("10"))

    await edit_expense(db, expense.id, ExpenseUpdate(
        amount=Decimal("45.00"), participants=[A, C], split=EqualSplit(),
    ))

    assert pairs(await list_open_balances(db, group_id=GROUP)) == [(C, A, Decimal("22.50"))]


async def test_expense_keeps_its_split_parameters(db):
    split = ItemizedSplit(
        items=[
            LineItem(name="steak", price=Decimal("30"), assigned_to=A),
            LineItem(name="pasta", price=Decimal("20"), assigned_to=B),
        ],
        tax=Surcharge(amount=Decimal("5")),
    )
    expense = await create_expense(db, dinner("55.00", split=split))

    params = (await get_expense_by_id(db, expense.id)).split_params
    assert params["method"] == "itemized"
    assert params["items"][0]["assigned_to"] == A
    assert params["items"][1]["name"] == "pasta"
    assert params["tax"]["amount"] == "5"
    assert params["tip"] is None

    edited = await edit_expense(db, expense.id, same_dinner("55.00"))
    assert edited.split_params == {"method": "equal"}


async def test_preview_shows_drift_that_create_rejects(db):
    seven = list(range(1, 8))
    preview = preview_splits(SplitPreview(amount=Decimal("100"), participants=seven, split=EqualSplit()))

    assert [s.amount for s in preview.splits] == [Decimal("14.29")] * 7
    assert preview.total == Decimal("100.03")

    with pytest.raises(ValidationError) as e:
        await create_expense(db, dinner("100", participants=seven))
    assert e.value.field == "amount"

    res = await db.execute(select(func.count(Expense.id)))
    assert res.scalar() == 0


async def test_edit_rejects_drift_beyond_a_cent(db):
    expense = await create_expense(db, dinner())

    with pytest.raises(ValidationError):
        await edit_expense(db, expense.id, ExpenseUpdate(
            amount=Decimal("100"), participants=list(range(1, 8)), split=EqualSplit(),
        ))

    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("22.50")


async def test_concurrent_balance_insert_rolls_back_the_expense(db, monkeypatch):
    await apply_share(db, B, A, GROUP, Decimal("5"), "USD", expense_id=1)
    await db.commit()

    async def missed_open_balance(*args, **kwargs):
        # another writer opened the balance after this lookup
        return None

    monkeypatch.setattr("splitledger.services.ledger_services.find_open_balance", missed_open_balance)

    with pytest.raises(ConcurrencyError):
        await create_expense(db, dinner())

    res = await db.execute(select(func.count(Expense.id)))
    assert res.scalar() == 0
    [balance] = await list_open_balances(db, group_id=GROUP)
    assert balance.amount == Decimal("5.00")
