import logging

from sqlalchemy.ext.asyncio import AsyncSession

from splitledger.core.config import settings
from splitledger.core.exceptions import ConcurrencyError, ValidationError
from splitledger.core.utils import ZERO, qround, to_decimal
from splitledger.db.balance_store import find_open_balance, insert_payment, list_payments
from splitledger.models.balance import BalanceStatus
from splitledger.models.payment import Payment, PaymentMethod

logger = logging.getLogger(__name__)


def _parse_method(method) -> PaymentMethod:
    try:
        return PaymentMethod(method)
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Unknown payment method '{method}' (expected one of {allowed})", field="method")


async def record_payment(
    db: AsyncSession,
    debtor_id: int,
    creditor_id: int,
    group_id: int,
    amount,
    method=PaymentMethod.MANUAL,
    currency: str | None = None,
    description: str | None = None,
) -> Payment:
    """Record that debtor paid creditor and settle their open balance with it.

    The payment is stored whether or not an open balance exists. Paying more
    than is owed closes the balance at zero; the excess is not carried over.
    """
    amount = qround(to_decimal(amount))
    if amount <= 0:
        raise ValidationError("Payment amount must be positive", field="amount")
    method = _parse_method(method)

    try:
        balance = await find_open_balance(db, debtor_id, creditor_id, group_id)

        if currency is None:
            currency = balance.currency if balance is not None else settings.DEFAULT_CURRENCY
        currency = currency.upper()
        if balance is not None and balance.currency != currency:
            raise ValidationError(
                f"Balance {balance.id} is kept in {balance.currency}, payment is in {currency}",
                field="currency",
            )

        payment = await insert_payment(db, Payment(
            debtor_id=debtor_id,
            creditor_id=creditor_id,
            group_id=group_id,
            amount=amount,
            currency=currency,
            method=method.value,
            description=description,
        ))

        if balance is None:
            logger.warning(
                "payment %s from %s to %s in group %s matches no open balance",
                payment.id, debtor_id, creditor_id, group_id,
            )
        else:
            remaining = qround(balance.amount - amount)
            if remaining <= 0:
                balance.amount = ZERO
                balance.status = BalanceStatus.PAID.value
            else:
                balance.amount = remaining
                balance.status = BalanceStatus.PARTIAL.value
            logger.info("payment %s applied to balance %s: %s left (%s)",
                        payment.id, balance.id, balance.amount, balance.status)

        await db.commit()
    except (ValidationError, ConcurrencyError):
        await db.rollback()
        raise

    return payment


async def get_payment_history(db: AsyncSession, group_id: int) -> list[Payment]:
    return await list_payments(db, group_id)
