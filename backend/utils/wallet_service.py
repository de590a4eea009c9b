import logging
import re
from datetime import datetime
from typing import Iterable, List

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from models.order import Order
from models.wallet import (
    EXPENSE_CATEGORIES,
    ManualTransactionCreate,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from utils.serializers import transaction_from_doc, transaction_to_doc

logger = logging.getLogger(__name__)

# Categories only the order lifecycle may post
ORDER_CATEGORIES = {
    TransactionCategory.SHIPPING,
    TransactionCategory.INSURANCE,
    TransactionCategory.INSPECTION,
    TransactionCategory.COLLECTION,
    TransactionCategory.COD,
    TransactionCategory.RETURN,
}

WITHDRAWAL_ONLY_CATEGORIES = EXPENSE_CATEGORIES | {
    TransactionCategory.INVENTORY_PURCHASE,
    TransactionCategory.MANUAL_WITHDRAWAL,
}


# ==============================
# Core: Append-only ledger write
# ==============================

async def add_transactions(db, transactions: Iterable[Transaction]) -> List[Transaction]:
    """
    Append transactions to the wallet. Ids are unique: a transaction
    whose id is already in the ledger is skipped, never overwritten.
    """
    inserted = []
    for txn in transactions:
        if txn.amount < 0:
            raise ValueError("Transaction amount cannot be negative")

        try:
            await db.wallet_transactions.insert_one(transaction_to_doc(txn))
        except DuplicateKeyError:
            logger.warning("LEDGER_DUPLICATE_SKIPPED txn=%s order=%s", txn.id, txn.order_id)
            continue

        logger.info(
            "LEDGER_POSTED txn=%s type=%s category=%s amount=%s order=%s",
            txn.id, txn.type.value, txn.category.value, txn.amount, txn.order_id,
        )
        inserted.append(txn)

    return inserted


async def list_transactions(db, limit: int | None = None) -> List[Transaction]:
    cursor = db.wallet_transactions.find({}).sort("created_at", DESCENDING)
    docs = await cursor.to_list(limit)
    return [transaction_from_doc(d) for d in docs]


# ==============================
# Wallet balance (derived only)
# ==============================

def summarize_transactions(transactions: Iterable[Transaction]) -> dict:
    balance = 0
    deposits = 0
    withdrawals = 0
    by_category = {}

    for txn in transactions:
        if txn.type == TransactionType.DEPOSIT:
            balance += txn.amount
            deposits += txn.amount
        else:
            balance -= txn.amount
            withdrawals += txn.amount
        key = txn.category.value
        by_category[key] = by_category.get(key, 0) + txn.amount

    return {
        "balance": balance,
        "total_deposits": deposits,
        "total_withdrawals": withdrawals,
        "total_outbound_shipping": by_category.get(TransactionCategory.SHIPPING.value, 0),
        "total_insurance_deducted": by_category.get(TransactionCategory.INSURANCE.value, 0),
        "total_inspection_fees_deducted": by_category.get(TransactionCategory.INSPECTION.value, 0),
        "total_collected_gross": by_category.get(TransactionCategory.COLLECTION.value, 0),
        "total_cod_fees": by_category.get(TransactionCategory.COD.value, 0),
        "total_return_loss": by_category.get(TransactionCategory.RETURN.value, 0),
        "total_expenses": sum(by_category.get(c.value, 0) for c in EXPENSE_CATEGORIES),
        "by_category": by_category,
    }


async def get_wallet_summary(db) -> dict:
    transactions = await list_transactions(db)
    summary = summarize_transactions(transactions)
    summary["transaction_count"] = len(transactions)
    return summary


# ==============================
# Manual entries
# ==============================

async def add_manual_transaction(db, data: ManualTransactionCreate) -> Transaction:
    category = data.category
    if category is None:
        category = (
            TransactionCategory.MANUAL_DEPOSIT
            if data.type == TransactionType.DEPOSIT
            else TransactionCategory.MANUAL_WITHDRAWAL
        )

    if category in ORDER_CATEGORIES:
        raise ValueError(f"Category {category.value} is reserved for order postings")

    if data.type == TransactionType.DEPOSIT and category in WITHDRAWAL_ONLY_CATEGORIES:
        raise ValueError(f"Category {category.value} must be a withdrawal")

    if data.type == TransactionType.WITHDRAWAL and category == TransactionCategory.MANUAL_DEPOSIT:
        raise ValueError("manual_deposit must be a deposit")

    txn = Transaction(
        id=f"{category.value}_{ObjectId()}",
        type=data.type,
        amount=data.amount,
        category=category,
        note=data.note,
        created_at=datetime.utcnow(),
    )
    await add_transactions(db, [txn])
    return txn


# ==============================
# Removal
# ==============================

async def delete_transaction(db, txn_id: str) -> bool:
    result = await db.wallet_transactions.delete_one({"id": txn_id})
    return result.deleted_count == 1


async def remove_order_transactions(db, order: Order) -> int:
    """
    Drop every transaction tied to a deleted order: by order_id, by the
    "_<order id>" id suffix, or by a "#<order number>" reference in the note.
    """
    number_ref = re.escape(f"#{order.order_number}") + r"(?!\w)"
    result = await db.wallet_transactions.delete_many({
        "$or": [
            {"order_id": order.id},
            {"id": {"$regex": f"_{re.escape(order.id)}$"}},
            {"note": {"$regex": number_ref}},
        ]
    })

    if result.deleted_count:
        logger.info("LEDGER_ORDER_CLEANUP order=%s removed=%s", order.id, result.deleted_count)
    return result.deleted_count
