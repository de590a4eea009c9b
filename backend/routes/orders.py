from fastapi import APIRouter, Depends, HTTPException, Query

from database import get_db
from models.order import (
    CollectRequest,
    OrderCreate,
    OrderStatus,
    PaymentStatusChange,
    PostCollectionReturnRequest,
    StatusChange,
)
from utils import order_service
from utils.audit import log_audit
from utils.guards import parse_object_id, raise_for_outcome
from utils.order_transitions import TransitionOutcome, TransitionResult
from utils.settings_service import get_fee_settings


router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


def _transition_response(result: TransitionResult, message: str) -> dict:
    return {
        "message": message,
        "outcome": result.outcome.value,
        "order": result.order,
        "transactions": result.transactions,
    }


# ======================================================
# LIST / READ
# ======================================================

@router.get("")
async def list_orders(
    status: OrderStatus | None = Query(None),
    limit: int = Query(100, gt=0, le=1000),
    db=Depends(get_db),
):
    return await order_service.list_orders(db, status=status, limit=limit)


@router.get("/{order_id}")
async def get_order(order_id: str, db=Depends(get_db)):
    parse_object_id(order_id, "order_id")

    order = await order_service.get_order(db, order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


@router.get("/{order_id}/financials")
async def order_financials(order_id: str, db=Depends(get_db)):
    parse_object_id(order_id, "order_id")
    settings = await get_fee_settings(db)

    financials = await order_service.get_order_financials(db, order_id, settings)
    if financials is None:
        raise HTTPException(404, "Order not found")
    return financials


# ======================================================
# CREATE ORDER (INCLUDING EXCHANGE)
# ======================================================

@router.post("", status_code=201)
async def create_order(data: OrderCreate, db=Depends(get_db)):
    if data.original_order_id:
        parse_object_id(data.original_order_id, "original_order_id")
    settings = await get_fee_settings(db)

    result = raise_for_outcome(await order_service.create_order(db, data, settings))

    response = _transition_response(result, "Order created successfully")
    if result.original_order:
        response["original_order"] = result.original_order
        response["credit"] = result.preview["credit"]
    return response


# ======================================================
# STATUS CHANGE
# ======================================================

@router.post("/{order_id}/status")
async def change_status(order_id: str, data: StatusChange, db=Depends(get_db)):
    parse_object_id(order_id, "order_id")
    settings = await get_fee_settings(db)

    result = await order_service.update_order_status(
        db,
        order_id,
        data.status,
        settings,
        waybill_number=data.waybill_number,
    )
    raise_for_outcome(result)
    return _transition_response(result, "Order status updated")


@router.post("/{order_id}/payment-status")
async def change_payment_status(order_id: str, data: PaymentStatusChange, db=Depends(get_db)):
    parse_object_id(order_id, "order_id")
    settings = await get_fee_settings(db)

    result = await order_service.update_payment_status(
        db,
        order_id,
        data.payment_status,
        settings,
        customer_paid_inspection=data.customer_paid_inspection,
    )
    raise_for_outcome(result)
    return _transition_response(result, "Payment status updated")


# ======================================================
# COLLECTION
# ======================================================

@router.post("/{order_id}/collect")
async def collect_order(order_id: str, data: CollectRequest, db=Depends(get_db)):
    parse_object_id(order_id, "order_id")
    settings = await get_fee_settings(db)

    result = await order_service.collect(
        db,
        order_id,
        settings,
        customer_paid_inspection=data.customer_paid_inspection,
    )
    raise_for_outcome(result)
    return _transition_response(result, "Order collected")


# ======================================================
# RETURN AFTER COLLECTION
# ======================================================

@router.post("/{order_id}/post-collection-return")
async def return_after_collection(
    order_id: str,
    data: PostCollectionReturnRequest,
    db=Depends(get_db),
):
    parse_object_id(order_id, "order_id")
    settings = await get_fee_settings(db)

    result = await order_service.return_after_collection(db, order_id, settings, confirm=data.confirm)
    raise_for_outcome(result)

    if result.outcome == TransitionOutcome.CONFIRMATION_REQUIRED:
        return {
            "message": result.message,
            "outcome": result.outcome.value,
            "confirmation_required": True,
            "preview": result.preview,
        }

    response = _transition_response(result, "Order returned after receipt")
    response["preview"] = result.preview
    return response


# ======================================================
# DELETE
# ======================================================

@router.delete("/{order_id}")
async def delete_order(order_id: str, db=Depends(get_db)):
    parse_object_id(order_id, "order_id")

    removed = await order_service.delete_order(db, order_id)
    if removed is None:
        raise HTTPException(404, "Order not found")

    await log_audit(db, "ORDER_DELETED", metadata={
        "order_id": order_id,
        "removed_transactions": removed,
    })
    return {"message": "Order deleted", "removed_transactions": removed}
