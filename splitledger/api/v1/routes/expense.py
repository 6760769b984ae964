from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.db.session import get_db
from splitledger.schemas.expense import ExpenseCreate, ExpenseOut, ExpenseUpdate, SplitPreview, SplitPreviewOut
from splitledger.services.expense_services import create_expense, delete_expense, edit_expense, get_expense_by_id, preview_splits

router = APIRouter()

@router.post("/preview", response_model=SplitPreviewOut, description="compute splits without saving")
async def preview(data: SplitPreview):
    return preview_splits(data)

@router.post("/", response_model=ExpenseOut, status_code=201)
async def add_expense(data: ExpenseCreate, db: AsyncSession = Depends(get_db)):
    return await create_expense(db, data)

@router.get("/{expense_id}", response_model=ExpenseOut)
async def fetch(expense_id: int, db: AsyncSession = Depends(get_db)):
    return await get_expense_by_id(db, expense_id)

@router.put("/{expense_id}", response_model=ExpenseOut)
async def edit(expense_id: int, data: ExpenseUpdate, db: AsyncSession = Depends(get_db)):
    return await edit_expense(db, expense_id, data)

@router.delete("/{expense_id}")
async def del_expense(expense_id: int, db: AsyncSession = Depends(get_db)):
    return await delete_expense(db, expense_id)
