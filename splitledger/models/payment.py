import enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric
from sqlalchemy.sql import func
from splitledger.db.session import Base


class PaymentMethod(str, enum.Enum):
    VENMO = "venmo"
    PAYPAL = "paypal"
    BANK = "bank"
    CARD = "card"
    CASH = "cash"
    MANUAL = "manual"


class Payment(Base):
    """Settlement event. Rows are only ever inserted."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    debtor_id = Column(Integer, nullable=False)
    creditor_id = Column(Integer, nullable=False)
    group_id = Column(Integer, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String(16), nullable=False, default=PaymentMethod.MANUAL.value)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __mapper_args__ = {"eager_defaults": True}
