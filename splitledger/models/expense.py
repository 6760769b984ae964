from sqlalchemy import Column, Integer, String, DateTime, Numeric, Boolean, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from splitledger.db.session import Base

class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, nullable=False, index=True)
    paid_by = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    description = Column(String, nullable=True)
    split_method = Column(String(16), nullable=False)
    split_params = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_deleted = Column(Boolean, nullable=False, default=False, server_default="false")

    splits = relationship(
        "ExpenseSplit",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ExpenseSplit.id",
    )

    __mapper_args__ = {"eager_defaults": True}
