from decimal import Decimal
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List

from splitledger.schemas.split import Split, SplitParams

class SplitPreview(BaseModel):
    amount: Decimal
    participants: List[int]
    split: SplitParams

class SplitPreviewOut(BaseModel):
    splits: List[Split]
    total: Decimal

class ExpenseCreate(BaseModel):
    group_id : int
    paid_by : int
    amount : Decimal
    currency : str | None = Field(default=None, min_length=3, max_length=3)
    description : str | None = None
    participants: List[int]
    split: SplitParams

class ExpenseUpdate(BaseModel):
    amount : Decimal
    description : str | None = None
    participants: List[int]
    split: SplitParams

class ExpenseSplitOut(BaseModel):
    user_id: int
    amount: Decimal
    percentage: Decimal | None = None

    class Config:
        from_attributes = True

class ExpenseOut(BaseModel):
    id: int
    group_id: int
    paid_by: int
    amount: Decimal
    currency: str
    description: str | None = None
    split_method: str
    split_params: dict | None = None
    created_at: datetime | None = None
    splits : List[ExpenseSplitOut]

    class Config:
        from_attributes = True
