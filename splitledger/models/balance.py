import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, Index, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from splitledger.db.session import Base


class BalanceStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


OPEN_STATUSES = (BalanceStatus.PENDING.value, BalanceStatus.PARTIAL.value)


def _utcnow():
    return datetime.now(timezone.utc)


_OPEN_ONLY = text("status IN ('pending', 'partial')")


class Balance(Base):
    """Directional debt of debtor_id to creditor_id inside one group."""

    __tablename__ = "balances"

    id = Column(Integer, primary_key=True, index=True)
    debtor_id = Column(Integer, nullable=False)
    creditor_id = Column(Integer, nullable=False)
    group_id = Column(Integer, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(16), nullable=False, default=BalanceStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=_utcnow)

    contributions = relationship(
        "BalanceContribution",
        back_populates="balance",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BalanceContribution.id",
    )

    __table_args__ = (
        # one open record per (debtor, creditor, group)
        Index(
            "uq_balances_open_pair",
            "debtor_id", "creditor_id", "group_id",
            unique=True,
            postgresql_where=_OPEN_ONLY,
            sqlite_where=_OPEN_ONLY,
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def expense_ids(self) -> list[int]:
        return [c.expense_id for c in self.contributions]


class BalanceContribution(Base):
    """How much one expense added to a balance."""

    __tablename__ = "balance_contributions"

    id = Column(Integer, primary_key=True, index=True)
    balance_id = Column(Integer, ForeignKey("balances.id"), nullable=False, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)

    balance = relationship("Balance", back_populates="contributions")
