from sqlalchemy import Column, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from splitledger.db.session import Base

class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False)
    user_id = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    percentage = Column(Numeric(6, 3), nullable=True)

    expense = relationship("Expense", back_populates="splits")
