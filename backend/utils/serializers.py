from bson import ObjectId

from models.order import Order
from models.wallet import Transaction


def serialize_object_id(value):
    return str(value) if isinstance(value, ObjectId) else value


def order_from_doc(doc: dict) -> Order:
    doc = dict(doc)
    doc["id"] = serialize_object_id(doc.pop("_id"))
    return Order.model_validate(doc)


def order_to_doc(order: Order) -> dict:
    """Mongo document for an order, minus its _id."""
    doc = order.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})
    doc["created_at"] = order.created_at
    doc["updated_at"] = order.updated_at
    return doc


def transaction_from_doc(doc: dict) -> Transaction:
    doc = dict(doc)
    doc.pop("_id", None)
    return Transaction.model_validate(doc)


def transaction_to_doc(txn: Transaction) -> dict:
    doc = txn.model_dump(mode="json", exclude={"created_at"})
    doc["created_at"] = txn.created_at
    return doc
