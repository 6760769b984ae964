"""Balance and payment persistence keyed by (debtor, creditor, group).

Callers own the transaction: nothing here commits. Reads meant for a
read-modify-write take a row lock, and lock or uniqueness conflicts come back
as ``ConcurrencyError``. Every other database error propagates untouched.
"""
import logging
from contextlib import contextmanager
from decimal import Decimal

from sqlalchemy import select, or_
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from splitledger.core.config import settings
from splitledger.core.exceptions import ConcurrencyError
from splitledger.models.balance import Balance, BalanceContribution, BalanceStatus, OPEN_STATUSES
from splitledger.models.payment import Payment

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected
_CONFLICT_SQLSTATES = {"55P03", "40001", "40P01"}


def _is_lock_conflict(e: DBAPIError) -> bool:
    orig = e.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig)


def _is_open_pair_violation(e: IntegrityError) -> bool:
    msg = str(e.orig)
    # postgres names the index, sqlite lists the columns
    return "uq_balances_open_pair" in msg or "balances.debtor_id" in msg


@contextmanager
def conflicts_as_concurrency_error(key):
    try:
        yield
    except IntegrityError as e:
        if not _is_open_pair_violation(e):
            raise
        logger.warning("open balance for %s was created concurrently", key)
        raise ConcurrencyError(f"Balance {key} was modified concurrently") from e
    except DBAPIError as e:
        if not _is_lock_conflict(e):
            raise
        logger.warning("balance %s is locked by another writer", key)
        raise ConcurrencyError(f"Balance {key} is locked by another writer") from e


async def find_open_balance(
    db: AsyncSession,
    debtor_id: int,
    creditor_id: int,
    group_id: int,
    lock: bool = True,
) -> Balance | None:
    q = select(Balance).where(
        Balance.debtor_id == debtor_id,
        Balance.creditor_id == creditor_id,
        Balance.group_id == group_id,
        Balance.status.in_(OPEN_STATUSES),
    )
    if lock:
        q = q.with_for_update(nowait=settings.BALANCE_LOCK_NOWAIT)

    with conflicts_as_concurrency_error((debtor_id, creditor_id, group_id)):
        res = await db.execute(q)
        return res.scalar_one_or_none()


async def add_balance(
    db: AsyncSession,
    debtor_id: int,
    creditor_id: int,
    group_id: int,
    amount: Decimal,
    currency: str,
) -> Balance:
    balance = Balance(
        debtor_id=debtor_id,
        creditor_id=creditor_id,
        group_id=group_id,
        amount=amount,
        currency=currency,
        status=BalanceStatus.PENDING.value,
        contributions=[],
    )
    db.add(balance)

    with conflicts_as_concurrency_error((debtor_id, creditor_id, group_id)):
        await db.flush()
    return balance


def add_contribution(balance: Balance, expense_id: int, amount: Decimal) -> BalanceContribution:
    for contribution in balance.contributions:
        if contribution.expense_id == expense_id:
            contribution.amount = contribution.amount + amount
            return contribution

    contribution = BalanceContribution(expense_id=expense_id, amount=amount)
    balance.contributions.append(contribution)
    return contribution


async def list_open_balances(
    db: AsyncSession,
    group_id: int | None = None,
    user_id: int | None = None,
) -> list[Balance]:
    q = select(Balance).where(Balance.status.in_(OPEN_STATUSES))

    if group_id is not None:
        q = q.where(Balance.group_id == group_id)
    if user_id is not None:
        q = q.where(or_(Balance.debtor_id == user_id, Balance.creditor_id == user_id))

    res = await db.execute(q.order_by(Balance.id))
    return list(res.scalars().all())


async def open_contributions_for_expense(db: AsyncSession, expense_id: int) -> list[BalanceContribution]:
    q = (
        select(BalanceContribution)
        .join(Balance, Balance.id == BalanceContribution.balance_id)
        .where(
            BalanceContribution.expense_id == expense_id,
            Balance.status.in_(OPEN_STATUSES),
        )
        .options(selectinload(BalanceContribution.balance))
        .order_by(BalanceContribution.id)
        .with_for_update(of=Balance, nowait=settings.BALANCE_LOCK_NOWAIT)
    )

    with conflicts_as_concurrency_error(("expense", expense_id)):
        res = await db.execute(q)
        return list(res.scalars().all())


async def insert_payment(db: AsyncSession, payment: Payment) -> Payment:
    db.add(payment)
    await db.flush()
    return payment


async def list_payments(db: AsyncSession, group_id: int) -> list[Payment]:
    q = (
        select(Payment)
        .where(Payment.group_id == group_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
    )
    res = await db.execute(q)
    return list(res.scalars().all())
