from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from splitledger.core.exceptions import ConcurrencyError, NotFoundError, ValidationError
from splitledger.core.logging import configure_logging
from splitledger.api.v1.routes.expense import router as expense_router
from splitledger.api.v1.routes.payments import router as payments_router
from splitledger.api.v1.routes.balances import router as balances_router

configure_logging()

app = FastAPI(title="SplitLedger")

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})

@app.exception_handler(ConcurrencyError)
async def concurrency_error_handler(request: Request, exc: ConcurrencyError):
    return JSONResponse(status_code=409, content={"detail": exc.message})

@app.get("/")
async def root():
    return {"message": "SplitLedger is live"}

app.include_router(expense_router, prefix="/api/v1/expense")
app.include_router(payments_router, prefix="/api/v1/payments")
app.include_router(balances_router, prefix="/api/v1/balances")
