import logging
from decimal import Decimal
from typing import Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from splitledger.core.exceptions import ValidationError
from splitledger.core.utils import ZERO, qround, to_decimal
from splitledger.db.balance_store import (
    add_balance,
    add_contribution,
    find_open_balance,
    list_open_balances,
    open_contributions_for_expense,
)
from splitledger.models.balance import Balance, BalanceStatus
from splitledger.models.expense import Expense
from splitledger.schemas.balances import BalanceOut, LedgerView
from splitledger.schemas.split import Split

logger = logging.getLogger(__name__)


async def apply_share(
    db: AsyncSession,
    debtor_id: int,
    creditor_id: int,
    group_id: int,
    amount,
    currency: str,
    expense_id: int,
) -> Balance | None:
    """Add ``amount`` of debt from debtor to creditor, caused by one expense.

    Merges into the open balance for the pair if there is one, otherwise
    opens a new ``pending`` balance. The payer's own share and zero shares
    write nothing and return None.
    """
    if debtor_id == creditor_id:
        return None

    amount = qround(to_decimal(amount))
    if amount <= 0:
        return None

    currency = currency.upper()

    balance = await find_open_balance(db, debtor_id, creditor_id, group_id)

    if balance is None:
        balance = await add_balance(db, debtor_id, creditor_id, group_id, amount, currency)
        add_contribution(balance, expense_id, amount)
        await db.flush()
        logger.info(
            "opened balance %s: %s owes %s %s %s in group %s",
            balance.id, debtor_id, creditor_id, amount, currency, group_id,
        )
        return balance

    if balance.currency != currency:
        raise ValidationError(
            f"Balance {balance.id} is kept in {balance.currency}, cannot add {currency}",
            field="currency",
        )

    balance.amount = qround(balance.amount + amount)
    add_contribution(balance, expense_id, amount)
    await db.flush()

    logger.info("merged %s into balance %s (now %s)", amount, balance.id, balance.amount)
    return balance


async def apply_expense_splits(db: AsyncSession, expense: Expense, splits: Iterable[Split]):
    for s in splits:
        await apply_share(
            db,
            debtor_id=s.user_id,
            creditor_id=expense.paid_by,
            group_id=expense.group_id,
            amount=s.amount,
            currency=expense.currency,
            expense_id=expense.id,
        )


async def reapply_expense_splits(
    db: AsyncSession,
    expense: Expense,
    old_shares: Mapping[int, Decimal],
    splits: Iterable[Split],
):
    """Move the ledger from an edited expense's old shares to its new ones.

    Only the change in each debtor's share is applied, so whatever was
    already paid against the old shares stays paid.
    """
    new_shares = {s.user_id: qround(s.amount) for s in splits}
    debtors = list(old_shares) + [uid for uid in new_shares if uid not in old_shares]

    for debtor_id in debtors:
        if debtor_id == expense.paid_by:
            continue

        delta = new_shares.get(debtor_id, ZERO) - old_shares.get(debtor_id, ZERO)
        if delta > 0:
            await apply_share(
                db, debtor_id, expense.paid_by, expense.group_id,
                delta, expense.currency, expense.id,
            )
        elif delta < 0:
            await _release_share(db, debtor_id, expense, -delta)


async def _release_share(db: AsyncSession, debtor_id: int, expense: Expense, amount: Decimal):
    balance = await find_open_balance(db, debtor_id, expense.paid_by, expense.group_id)

    if balance is None:
        # the old share is already paid off; the excess stays absorbed
        logger.info("expense %s: %s released from %s, nothing open to reduce",
                    expense.id, amount, debtor_id)
        return

    for c in list(balance.contributions):
        if c.expense_id == expense.id:
            c.amount = qround(c.amount - amount)
            if c.amount <= 0:
                balance.contributions.remove(c)

    remaining = qround(balance.amount - amount)
    if remaining <= 0:
        balance.amount = ZERO
        balance.status = BalanceStatus.PAID.value
    else:
        balance.amount = remaining
    await db.flush()

    logger.info("expense %s: released %s from balance %s (now %s, %s)",
                expense.id, amount, balance.id, balance.amount, balance.status)


async def reverse_expense(db: AsyncSession, expense_id: int):
    """Take an expense's contributions back out of the open balances.

    Balances already paid off keep their contributions as history.
    """
    contributions = await open_contributions_for_expense(db, expense_id)

    for c in contributions:
        balance = c.balance
        balance.amount = qround(balance.amount - c.amount)
        balance.contributions.remove(c)

        if balance.amount <= 0 and not balance.contributions:
            await db.delete(balance)
            logger.info("dropped balance %s, expense %s was its only debt", balance.id, expense_id)
        elif balance.amount <= 0:
            balance.amount = ZERO
            balance.status = BalanceStatus.PAID.value
            logger.info("balance %s settled by reversing expense %s", balance.id, expense_id)
        else:
            logger.info("removed %s of expense %s from balance %s", c.amount, expense_id, balance.id)

    await db.flush()


async def net_position(db: AsyncSession, user_id: int, group_id: int) -> Decimal:
    balances = await list_open_balances(db, group_id=group_id, user_id=user_id)

    net = ZERO
    for b in balances:
        if b.creditor_id == user_id:
            net += b.amount
        if b.debtor_id == user_id:
            net -= b.amount
    return qround(net)


async def open_balances_for(db: AsyncSession, user_id: int, group_id: int | None = None) -> LedgerView:
    balances = await list_open_balances(db, group_id=group_id, user_id=user_id)

    you_owe = [b for b in balances if b.debtor_id == user_id]
    you_are_owed = [b for b in balances if b.creditor_id == user_id]

    return LedgerView(
        user_id=user_id,
        you_owe=[BalanceOut.model_validate(b) for b in you_owe],
        you_are_owed=[BalanceOut.model_validate(b) for b in you_are_owed],
        total_owed=qround(sum((b.amount for b in you_owe), ZERO)),
        total_due=qround(sum((b.amount for b in you_are_owed), ZERO)),
    )


async def has_unsettled_balances(db: AsyncSession, user_id: int, group_id: int) -> bool:
    balances = await list_open_balances(db, group_id=group_id, user_id=user_id)
    return len(balances) > 0
