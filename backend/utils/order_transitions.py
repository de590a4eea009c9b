"""
Financial side effects of order lifecycle transitions.

Every function here is pure: it takes an order and the fee settings and
returns a TransitionResult holding the replacement order and the ledger
transactions to append. Nothing is written; utils.order_service commits
the result.

Each fee category is posted at most once per order. The guard flags on
the order (shipping_and_insurance_deducted, inspection_fee_deducted,
return_fee_deducted, collection_processed) record what was already posted.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from config.constants import (
    NOTE_SHIPPING,
    NOTE_INSURANCE,
    NOTE_INSPECTION,
    NOTE_RETURN,
    NOTE_COLLECTION,
    NOTE_COD,
    NOTE_POST_RETURN_REFUND,
    NOTE_POST_RETURN_FEE,
    NOTE_EXCHANGE,
    ORDER_NUMBER_PREFIX,
)
from config.env import CURRENCY_LABEL
from models.order import (
    Order,
    OrderCreate,
    OrderStatus,
    OrderType,
    PaymentStatus,
    SHIPPED_LIKE_STATUSES,
    RETURN_FEE_STATUSES,
    TERMINAL_STATUSES,
)
from models.settings import FeeSettings
from models.wallet import Transaction, TransactionCategory, TransactionType
from utils.financials import (
    amount_due,
    calculate_cod_fee,
    insurance_fee,
    resolve_fee_policy,
)

GUARD_FLAGS = (
    "shipping_and_insurance_deducted",
    "inspection_fee_deducted",
    "return_fee_deducted",
    "collection_processed",
)

# Statuses only reachable through their own action, never a plain status edit
ACTION_ONLY_STATUSES = {
    OrderStatus.COLLECTED: "Use the collect action (/collect) to mark an order collected",
    OrderStatus.RETURNED_AFTER_RECEIPT: (
        "Use the post-collection return action (/post-collection-return) on a collected order"
    ),
    OrderStatus.EXCHANGED: "Orders become exchanged only by creating an exchange order",
}


class TransitionOutcome(str, Enum):
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    ALREADY_PROCESSED = "already_processed"
    NOT_ELIGIBLE = "not_eligible"
    WAYBILL_REQUIRED = "waybill_required"
    CONFIRMATION_REQUIRED = "confirmation_required"
    CONFLICT = "conflict"


class TransitionResult(BaseModel):
    outcome: TransitionOutcome
    order: Optional[Order] = None
    transactions: List[Transaction] = []
    preview: Optional[dict] = None
    original_order: Optional[Order] = None
    message: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED


def _txn(
    prefix: str,
    order: Order,
    txn_type: TransactionType,
    amount: float,
    category: TransactionCategory,
    note: str,
    now: datetime,
) -> Transaction:
    return Transaction(
        id=f"{prefix}_{order.id}",
        type=txn_type,
        amount=amount,
        category=category,
        note=note.format(order_number=order.order_number),
        order_id=order.id,
        created_at=now,
    )


# ======================================================
# STATUS CHANGE
# ======================================================

def apply_status_change(
    order: Order,
    new_status: OrderStatus,
    settings: FeeSettings,
    *,
    waybill_number: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    now = now or datetime.utcnow()

    if order.status in TERMINAL_STATUSES:
        return TransitionResult(
            outcome=TransitionOutcome.NOT_ELIGIBLE,
            order=order,
            message=f"Order is {order.status.value} and can no longer change status",
        )

    if new_status in ACTION_ONLY_STATUSES:
        return TransitionResult(
            outcome=TransitionOutcome.NOT_ELIGIBLE,
            order=order,
            message=ACTION_ONLY_STATUSES[new_status],
        )

    waybill = (waybill_number or "").strip() or order.waybill_number
    if new_status == OrderStatus.SHIPPED and not waybill:
        return TransitionResult(
            outcome=TransitionOutcome.WAYBILL_REQUIRED,
            order=order,
            message="A waybill number is required before shipping",
        )

    updates = {"status": new_status, "waybill_number": waybill, "updated_at": now}
    transactions: List[Transaction] = []
    policy = resolve_fee_policy(order.shipping_company, settings)

    if new_status in SHIPPED_LIKE_STATUSES and not order.shipping_and_insurance_deducted:
        transactions.append(_txn(
            "ship", order, TransactionType.WITHDRAWAL, order.shipping_fee,
            TransactionCategory.SHIPPING, NOTE_SHIPPING, now,
        ))

        if order.is_insured and policy.insurance_rate > 0:
            transactions.append(_txn(
                "insure", order, TransactionType.WITHDRAWAL, insurance_fee(order, policy),
                TransactionCategory.INSURANCE, NOTE_INSURANCE, now,
            ))

        # inspection rides on the first shipment only
        if order.include_inspection_fee and not order.inspection_fee_deducted:
            if policy.inspection_fee > 0:
                transactions.append(_txn(
                    "insp", order, TransactionType.WITHDRAWAL, policy.inspection_fee,
                    TransactionCategory.INSPECTION, NOTE_INSPECTION, now,
                ))
                updates["inspection_fee_deducted"] = True

        updates["shipping_and_insurance_deducted"] = True

    if new_status in RETURN_FEE_STATUSES and not order.return_fee_deducted:
        if policy.return_fee_enabled and policy.return_fee > 0:
            transactions.append(_txn(
                "return", order, TransactionType.WITHDRAWAL, policy.return_fee,
                TransactionCategory.RETURN, NOTE_RETURN, now,
            ))
            updates["return_fee_deducted"] = True

    return TransitionResult(
        outcome=TransitionOutcome.APPLIED,
        order=order.model_copy(update=updates),
        transactions=transactions,
    )


# ======================================================
# COLLECTION (delivered -> collected)
# ======================================================

def collect_order(
    order: Order,
    settings: FeeSettings,
    *,
    customer_paid_inspection: bool = False,
    now: Optional[datetime] = None,
) -> TransitionResult:
    now = now or datetime.utcnow()

    if order.collection_processed:
        return TransitionResult(
            outcome=TransitionOutcome.ALREADY_PROCESSED,
            order=order,
            message="Collection already processed",
        )

    if order.status != OrderStatus.DELIVERED:
        return TransitionResult(
            outcome=TransitionOutcome.NOT_ELIGIBLE,
            order=order,
            message="Only delivered orders can be collected",
        )

    policy = resolve_fee_policy(order.shipping_company, settings)
    paid_inspection = bool(customer_paid_inspection and order.include_inspection_fee)

    total_collected = amount_due(order) + (policy.inspection_fee if paid_inspection else 0)
    transactions: List[Transaction] = []
    # exchange credit can leave nothing to collect
    if total_collected > 0:
        transactions.append(_txn(
            "collect", order, TransactionType.DEPOSIT, total_collected,
            TransactionCategory.COLLECTION, NOTE_COLLECTION, now,
        ))

    cod_fee = calculate_cod_fee(order, policy)
    if cod_fee > 0:
        transactions.append(_txn(
            "cod", order, TransactionType.WITHDRAWAL, cod_fee,
            TransactionCategory.COD, NOTE_COD, now,
        ))

    return TransitionResult(
        outcome=TransitionOutcome.APPLIED,
        order=order.model_copy(update={
            "status": OrderStatus.COLLECTED,
            "payment_status": PaymentStatus.PAID,
            "inspection_fee_paid_by_customer": paid_inspection,
            "collection_processed": True,
            "updated_at": now,
        }),
        transactions=transactions,
    )


# ======================================================
# RETURN AFTER COLLECTION
# ======================================================

def post_collection_return_preview(order: Order, settings: FeeSettings) -> dict:
    policy = resolve_fee_policy(order.shipping_company, settings)

    refunds_product = policy.refunds_product_price_after_collection
    refund_amount = max(0, amount_due(order)) if refunds_product else 0
    return_fee = policy.return_fee if policy.return_fee_enabled else 0
    retained_inspection = policy.inspection_fee if order.inspection_fee_paid_by_customer else 0

    lines = [f"هل أنت متأكد من إرجاع الطلب #{order.order_number}؟"]
    if refunds_product:
        lines.append(f"سيتم إرجاع مبلغ ({refund_amount:,.2f} {CURRENCY_LABEL}) للعميل وخصمه من المحفظة.")
        if retained_inspection:
            lines.append(f"لن يتم إرجاع رسوم المعاينة ({retained_inspection:,.2f} {CURRENCY_LABEL}) لأنها غير قابلة للاسترداد.")
    else:
        lines.append("لن يتم خصم قيمة المنتج من المحفظة حسب سياسة الشركة.")
    if return_fee > 0:
        lines.append(f"سيتم خصم مصاريف شحن المرتجع ({return_fee:,.2f} {CURRENCY_LABEL}).")

    return {
        "refunds_product_price": refunds_product,
        "refund_amount": refund_amount,
        "return_fee": return_fee,
        "retained_inspection_fee": retained_inspection,
        "message": "\n".join(lines),
    }


def post_collection_return(
    order: Order,
    settings: FeeSettings,
    *,
    confirm: bool = False,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Refund a collected order the customer sent back.

    Irreversible, so it only executes with confirm=True; otherwise the
    result carries a preview of what would be posted.
    """
    now = now or datetime.utcnow()

    if order.status == OrderStatus.RETURNED_AFTER_RECEIPT:
        return TransitionResult(
            outcome=TransitionOutcome.ALREADY_PROCESSED,
            order=order,
            message="Order already returned after receipt",
        )

    if order.status != OrderStatus.COLLECTED:
        return TransitionResult(
            outcome=TransitionOutcome.NOT_ELIGIBLE,
            order=order,
            message="Only collected orders can be returned after receipt",
        )

    preview = post_collection_return_preview(order, settings)
    if not confirm:
        return TransitionResult(
            outcome=TransitionOutcome.CONFIRMATION_REQUIRED,
            order=order,
            preview=preview,
            message=preview["message"],
        )

    transactions: List[Transaction] = []
    if preview["refunds_product_price"] and preview["refund_amount"] > 0:
        transactions.append(_txn(
            "post_return_refund", order, TransactionType.WITHDRAWAL, preview["refund_amount"],
            TransactionCategory.RETURN, NOTE_POST_RETURN_REFUND, now,
        ))
    if preview["return_fee"] > 0:
        transactions.append(_txn(
            "post_return_fee", order, TransactionType.WITHDRAWAL, preview["return_fee"],
            TransactionCategory.RETURN, NOTE_POST_RETURN_FEE, now,
        ))

    return TransitionResult(
        outcome=TransitionOutcome.APPLIED,
        order=order.model_copy(update={
            "status": OrderStatus.RETURNED_AFTER_RECEIPT,
            "updated_at": now,
        }),
        transactions=transactions,
        preview=preview,
    )


# ======================================================
# INTAKE / EXCHANGE
# ======================================================

def build_order(data: OrderCreate, order_id: str, now: Optional[datetime] = None) -> Order:
    now = now or datetime.utcnow()

    fields = data.model_dump(exclude={"customer_phone2"})
    if data.items:
        fields["product_price"] = sum(i.price * i.quantity for i in data.items)
        fields["product_cost"] = sum(i.cost * i.quantity for i in data.items)
        fields["weight"] = sum(i.weight * i.quantity for i in data.items)
        fields["product_name"] = ", ".join(i.name for i in data.items)

    notes = data.notes or ""
    if data.customer_phone2:
        notes = f"رقم هاتف إضافي: {data.customer_phone2}\n{notes}"

    fields.update({
        "id": order_id,
        "order_number": data.order_number or f"{ORDER_NUMBER_PREFIX}{int(now.timestamp() * 1000)}",
        "notes": notes.strip(),
        "status": OrderStatus.AWAITING_CALL,
        "payment_status": PaymentStatus.PENDING,
        "created_at": now,
        "updated_at": now,
    })
    return Order.model_validate(fields)


def apply_exchange_credit(
    new_order: Order,
    original: Order,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Credit what the original order was worth against its replacement.

    The returned order is the replacement; the original moves to the
    terminal exchanged status and comes back as original_order.
    """
    now = now or datetime.utcnow()

    if original.status in TERMINAL_STATUSES:
        return TransitionResult(
            outcome=TransitionOutcome.NOT_ELIGIBLE,
            order=new_order,
            message="Original order was already exchanged",
        )

    credit = amount_due(original)
    updates = {
        "order_type": OrderType.EXCHANGE,
        "original_order_id": original.id,
    }

    if credit > 0:
        new_total = new_order.product_price + new_order.shipping_fee - (new_order.discount or 0)
        final_amount = new_total - credit
        note = NOTE_EXCHANGE.format(
            original_order_id=original.order_number,
            credit=f"{credit:,.2f}",
            currency=CURRENCY_LABEL,
        )
        updates.update({
            "total_amount_override": final_amount,
            "payment_status": PaymentStatus.PAID if final_amount <= 0 else PaymentStatus.PENDING,
            "notes": f"{note}\n{new_order.notes or ''}".strip(),
        })

    exchanged = original.model_copy(update={"status": OrderStatus.EXCHANGED, "updated_at": now})

    return TransitionResult(
        outcome=TransitionOutcome.APPLIED,
        order=new_order.model_copy(update=updates),
        preview={"credit": credit},
        original_order=exchanged,
    )
