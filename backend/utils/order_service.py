import logging
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from models.order import Order, OrderCreate, OrderStatus, OrderType, PaymentStatus
from models.settings import FeeSettings
from utils.financials import calculate_order_profit_loss
from utils.order_timeline import record_order_event
from utils.order_transitions import (
    GUARD_FLAGS,
    TransitionOutcome,
    TransitionResult,
    apply_exchange_credit,
    apply_status_change,
    build_order,
    collect_order,
    post_collection_return,
)
from utils.serializers import order_from_doc, order_to_doc
from utils.wallet_service import add_transactions, remove_order_transactions

logger = logging.getLogger(__name__)


def _to_object_id(order_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(order_id)
    except (InvalidId, TypeError):
        return None


async def get_order(db, order_id: str) -> Optional[Order]:
    oid = _to_object_id(order_id)
    if oid is None:
        return None

    doc = await db.orders.find_one({"_id": oid})
    if not doc:
        return None
    return order_from_doc(doc)


async def list_orders(db, status: OrderStatus | None = None, limit: int | None = None) -> List[Order]:
    query = {"status": status.value} if status else {}
    docs = await db.orders.find(query).sort("created_at", DESCENDING).to_list(limit)
    return [order_from_doc(d) for d in docs]


def _not_found(order_id: str) -> TransitionResult:
    return TransitionResult(
        outcome=TransitionOutcome.NOT_FOUND,
        message=f"Order {order_id} not found",
    )


async def _safe_timeline(db, order_id: str, event: str, metadata: dict | None = None):
    try:
        await record_order_event(db, order_id=order_id, event=event, metadata=metadata)
    except Exception:
        # Timeline must never undo a committed financial write
        logger.exception("TIMELINE_ERROR order=%s event=%s", order_id, event)


# ======================================================
# COMMIT
# ======================================================

async def _commit(db, before: Order, result: TransitionResult, event: str) -> TransitionResult:
    """
    Write the replacement order, then append its transactions.

    The update only matches while the order still has the status we read
    and every guard flag we are about to set is still unset; otherwise a
    concurrent writer won and nothing is posted.
    """
    after = result.order
    query = {"_id": ObjectId(before.id), "status": before.status.value}
    for flag in GUARD_FLAGS:
        if getattr(after, flag) and not getattr(before, flag):
            query[flag] = {"$ne": True}

    doc = order_to_doc(after)
    doc.pop("created_at", None)

    update_res = await db.orders.update_one(query, {"$set": doc})
    if update_res.matched_count == 0:
        logger.warning("ORDER_WRITE_CONFLICT order=%s event=%s", before.id, event)
        return TransitionResult(
            outcome=TransitionOutcome.CONFLICT,
            order=before,
            message="Order was changed concurrently, reload and retry",
        )

    posted = await add_transactions(db, result.transactions)

    await _safe_timeline(db, before.id, event, {
        "from_status": before.status.value,
        "to_status": after.status.value,
        "transactions": [t.id for t in posted],
    })

    return result.model_copy(update={"transactions": posted})


# ======================================================
# OPERATIONS
# ======================================================

async def _insert_order(db, order: Order) -> bool:
    doc = order_to_doc(order)
    doc["_id"] = ObjectId(order.id)
    try:
        await db.orders.insert_one(doc)
    except DuplicateKeyError:
        logger.warning("ORDER_NUMBER_TAKEN number=%s", order.order_number)
        return False
    return True


async def create_order(db, data: OrderCreate, settings: FeeSettings) -> TransitionResult:
    """
    Store a new order. For an exchange the replacement is inserted first and
    the original is only marked exchanged once that insert succeeded; if the
    original changed in between, the replacement is removed again.
    """
    now = datetime.utcnow()
    order = build_order(data, str(ObjectId()), now=now)
    original = None

    if data.order_type == OrderType.EXCHANGE:
        if not data.original_order_id:
            return TransitionResult(
                outcome=TransitionOutcome.NOT_ELIGIBLE,
                message="Exchange orders need original_order_id",
            )

        original = await get_order(db, data.original_order_id)
        if original is None:
            return _not_found(data.original_order_id)

        result = apply_exchange_credit(order, original, now=now)
        if not result.applied:
            return result
        order = result.order
    else:
        result = TransitionResult(outcome=TransitionOutcome.APPLIED, order=order)

    if not await _insert_order(db, order):
        return TransitionResult(
            outcome=TransitionOutcome.CONFLICT,
            order=original,
            message=f"Order number {order.order_number} already exists",
        )

    if original is not None:
        exchanged = result.original_order
        update_res = await db.orders.update_one(
            {"_id": ObjectId(original.id), "status": original.status.value},
            {"$set": {"status": exchanged.status.value, "updated_at": now}},
        )
        if update_res.matched_count == 0:
            logger.warning("ORDER_WRITE_CONFLICT order=%s event=ORDER_EXCHANGED", original.id)
            await db.orders.delete_one({"_id": ObjectId(order.id)})
            return TransitionResult(
                outcome=TransitionOutcome.CONFLICT,
                order=original,
                message="Original order was changed concurrently, reload and retry",
            )
        await _safe_timeline(db, original.id, "ORDER_EXCHANGED", {
            "replacement_order_id": order.id,
            "credit": result.preview["credit"],
        })

    logger.info("ORDER_CREATED order=%s number=%s type=%s", order.id, order.order_number, order.order_type.value)
    await _safe_timeline(db, order.id, "ORDER_CREATED", {
        "order_type": order.order_type.value,
        "original_order_id": order.original_order_id,
    })

    return result


async def update_order_status(
    db,
    order_id: str,
    new_status: OrderStatus,
    settings: FeeSettings,
    *,
    waybill_number: str | None = None,
) -> TransitionResult:
    order = await get_order(db, order_id)
    if order is None:
        return _not_found(order_id)

    result = apply_status_change(order, new_status, settings, waybill_number=waybill_number)
    if not result.applied:
        return result

    return await _commit(db, order, result, "ORDER_STATUS_CHANGED")


async def collect(
    db,
    order_id: str,
    settings: FeeSettings,
    *,
    customer_paid_inspection: bool = False,
) -> TransitionResult:
    order = await get_order(db, order_id)
    if order is None:
        return _not_found(order_id)

    result = collect_order(order, settings, customer_paid_inspection=customer_paid_inspection)
    if not result.applied:
        return result

    return await _commit(db, order, result, "ORDER_COLLECTED")


async def update_payment_status(
    db,
    order_id: str,
    payment_status: PaymentStatus,
    settings: FeeSettings,
    *,
    customer_paid_inspection: bool = False,
) -> TransitionResult:
    order = await get_order(db, order_id)
    if order is None:
        return _not_found(order_id)

    # Marking a delivered order as paid is a collection
    if payment_status == PaymentStatus.PAID and order.status == OrderStatus.DELIVERED:
        return await collect(
            db,
            order_id,
            settings,
            customer_paid_inspection=customer_paid_inspection,
        )

    updated = order.model_copy(update={"payment_status": payment_status, "updated_at": datetime.utcnow()})
    return await _commit(
        db,
        order,
        TransitionResult(outcome=TransitionOutcome.APPLIED, order=updated),
        "PAYMENT_STATUS_CHANGED",
    )


async def return_after_collection(
    db,
    order_id: str,
    settings: FeeSettings,
    *,
    confirm: bool = False,
) -> TransitionResult:
    order = await get_order(db, order_id)
    if order is None:
        return _not_found(order_id)

    result = post_collection_return(order, settings, confirm=confirm)
    if not result.applied:
        return result

    return await _commit(db, order, result, "ORDER_RETURNED_AFTER_RECEIPT")


async def delete_order(db, order_id: str) -> Optional[int]:
    """Delete an order and its ledger trail. None when the order is unknown."""
    order = await get_order(db, order_id)
    if order is None:
        return None

    await db.orders.delete_one({"_id": ObjectId(order.id)})
    removed = await remove_order_transactions(db, order)
    logger.info("ORDER_DELETED order=%s number=%s", order.id, order.order_number)
    return removed


async def get_order_financials(db, order_id: str, settings: FeeSettings) -> Optional[dict]:
    order = await get_order(db, order_id)
    if order is None:
        return None
    return calculate_order_profit_loss(order, settings)
