from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.db.session import get_db
from splitledger.schemas.balances import LedgerView, NetPositionOut, SimplifiedOut
from splitledger.services.ledger_services import net_position, open_balances_for
from splitledger.services.debt_simplifier import simplify

router = APIRouter()


@router.get("/user/{user_id}", response_model=LedgerView)
async def user_balances(
    user_id: int,
    group_id: int | None = None,
    db: AsyncSession = Depends(get_db)
):
    return await open_balances_for(db, user_id, group_id=group_id)


@router.get("/group/{group_id}/net/{user_id}", response_model=NetPositionOut)
async def user_net_position(
    group_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db)
):
    net = await net_position(db, user_id, group_id)
    return {"user_id": user_id, "group_id": group_id, "net_balance": net}


@router.get("/group/{group_id}/simplified", response_model=SimplifiedOut)
async def simplified_balances(
    group_id: int,
    db: AsyncSession = Depends(get_db)
):
    return {"group_id": group_id, "transfers": await simplify(db, group_id)}
