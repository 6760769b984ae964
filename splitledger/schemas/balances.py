from decimal import Decimal
from datetime import datetime
from pydantic import BaseModel
from typing import List

class BalanceOut(BaseModel):
    id: int
    debtor_id: int
    creditor_id: int
    group_id: int
    amount: Decimal
    currency: str
    status: str
    expense_ids: List[int] = []
    updated_at: datetime | None = None

    class Config:
        from_attributes = True

class LedgerView(BaseModel):
    user_id: int
    you_owe: List[BalanceOut]
    you_are_owed: List[BalanceOut]
    total_owed: Decimal
    total_due: Decimal

class NetPositionOut(BaseModel):
    user_id: int
    group_id: int
    net_balance: Decimal

class NetTransfer(BaseModel):
    from_id: int
    to_id: int
    amount: Decimal

class SimplifiedOut(BaseModel):
    group_id: int
    transfers: List[NetTransfer]
