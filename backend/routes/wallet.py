from fastapi import APIRouter, Depends, HTTPException, Query

from database import get_db
from models.wallet import ManualTransactionCreate
from utils.audit import log_audit
from utils.wallet_service import (
    add_manual_transaction,
    delete_transaction,
    get_wallet_summary,
    list_transactions,
)

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("")
async def wallet_summary(db=Depends(get_db)):
    return await get_wallet_summary(db)


@router.get("/transactions")
async def wallet_transactions(
    limit: int = Query(200, gt=0, le=5000),
    db=Depends(get_db),
):
    return await list_transactions(db, limit=limit)


@router.post("/transactions", status_code=201)
async def create_manual_transaction(data: ManualTransactionCreate, db=Depends(get_db)):
    try:
        txn = await add_manual_transaction(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))

    await log_audit(db, "WALLET_MANUAL_TRANSACTION", metadata={
        "transaction_id": txn.id,
        "type": txn.type.value,
        "category": txn.category.value,
        "amount": txn.amount,
    })
    return txn


@router.delete("/transactions/{txn_id}")
async def remove_transaction(txn_id: str, db=Depends(get_db)):
    if not await delete_transaction(db, txn_id):
        raise HTTPException(404, "Transaction not found")

    await log_audit(db, "WALLET_TRANSACTION_DELETED", metadata={"transaction_id": txn_id})
    return {"message": "Transaction deleted"}
