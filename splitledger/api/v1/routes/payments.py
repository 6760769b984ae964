from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.db.session import get_db
from splitledger.schemas.payment import PaymentCreate, PaymentOut
from splitledger.services.payment_services import record_payment, get_payment_history

router = APIRouter()

@router.post("/", response_model=PaymentOut, status_code=201)
async def add_payment(data: PaymentCreate, db: AsyncSession = Depends(get_db)):
    return await record_payment(
        db,
        debtor_id=data.debtor_id,
        creditor_id=data.creditor_id,
        group_id=data.group_id,
        amount=data.amount,
        method=data.method,
        currency=data.currency,
        description=data.description,
    )

@router.get("/history/{group_id}", response_model=list[PaymentOut])
async def history(group_id: int, db: AsyncSession = Depends(get_db)):
    return await get_payment_history(db, group_id)
