import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from splitledger.core.config import settings
from splitledger.core.exceptions import ConcurrencyError, NotFoundError, ValidationError
from splitledger.core.utils import ZERO, qround
from splitledger.models.expense import Expense
from splitledger.models.expense_split import ExpenseSplit
from splitledger.schemas.expense import ExpenseCreate, ExpenseUpdate, SplitPreview, SplitPreviewOut
from splitledger.services.ledger_services import (
    apply_expense_splits,
    reapply_expense_splits,
    reverse_expense,
)
from splitledger.services.split_calculator import check_reconciles, compute_splits

logger = logging.getLogger(__name__)


def preview_splits(data: SplitPreview) -> SplitPreviewOut:
    # shown as computed, even when the shares drift from the total
    splits = compute_splits(data.amount, data.participants, data.split)
    return SplitPreviewOut(
        splits=splits,
        total=qround(sum((s.amount for s in splits), ZERO)),
    )


def _split_rows(splits):
    return [
        ExpenseSplit(user_id=s.user_id, amount=s.amount, percentage=s.percentage)
        for s in splits
    ]


async def create_expense(db: AsyncSession, data: ExpenseCreate) -> Expense:
    # 1. Compute splits; bad input fails here before anything is written
    splits = compute_splits(data.amount, data.participants, data.split)
    check_reconciles(data.amount, splits)

    try:
        # 2. Create expense with its split rows
        expense = Expense(
            group_id=data.group_id,
            paid_by=data.paid_by,
            amount=qround(data.amount),
            currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
            description=data.description,
            split_method=data.split.method,
            split_params=data.split.model_dump(mode="json"),
            splits=_split_rows(splits),
        )
        db.add(expense)
        await db.flush()  # gives expense.id

        # 3. Everyone but the payer now owes the payer their share
        await apply_expense_splits(db, expense, splits)

        await db.commit()
    except (ValidationError, ConcurrencyError):
        await db.rollback()
        raise

    logger.info("expense %s: %s %s paid by %s, %s split across %d",
                expense.id, expense.amount, expense.currency, expense.paid_by,
                expense.split_method, len(splits))
    return expense


async def get_expense_by_id(db: AsyncSession, expense_id: int) -> Expense:
    q = select(Expense).where(Expense.id == expense_id, Expense.is_deleted == False)
    res = await db.execute(q)
    expense = res.scalar_one_or_none()

    if not expense:
        raise NotFoundError(f"Expense {expense_id} not found")
    return expense


async def edit_expense(db: AsyncSession, expense_id: int, data: ExpenseUpdate) -> Expense:
    expense = await get_expense_by_id(db, expense_id)

    splits = compute_splits(data.amount, data.participants, data.split)
    check_reconciles(data.amount, splits)

    old_shares = {s.user_id: s.amount for s in expense.splits}

    try:
        # only the change in each share reaches the ledger; paid debt stays paid
        await reapply_expense_splits(db, expense, old_shares, splits)

        expense.amount = qround(data.amount)
        expense.split_method = data.split.method
        expense.split_params = data.split.model_dump(mode="json")
        if data.description is not None:
            expense.description = data.description

        # old split rows are orphaned and deleted on flush
        expense.splits = _split_rows(splits)

        await db.commit()
    except (ValidationError, ConcurrencyError):
        await db.rollback()
        raise

    logger.info("expense %s edited: now %s split %s across %d",
                expense.id, expense.amount, expense.split_method, len(splits))
    return expense


async def delete_expense(db: AsyncSession, expense_id: int):
    expense = await get_expense_by_id(db, expense_id)

    try:
        await reverse_expense(db, expense.id)
        expense.is_deleted = True
        await db.commit()
    except ConcurrencyError:
        await db.rollback()
        raise

    logger.info("expense %s deleted", expense_id)
    return {"status": "deleted"}
