from decimal import Decimal
from datetime import datetime
from pydantic import BaseModel, Field

from splitledger.models.payment import PaymentMethod

class PaymentCreate(BaseModel):
    debtor_id: int
    creditor_id: int
    group_id: int
    amount: Decimal
    method: PaymentMethod = PaymentMethod.MANUAL
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    description: str | None = None

class PaymentOut(BaseModel):
    id: int
    debtor_id: int
    creditor_id: int
    group_id: int
    amount: Decimal
    currency: str
    method: str
    description: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
