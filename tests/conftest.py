"""
Shared fixtures.

FakeDatabase is an in-memory test double for the subset of the Motor
collection API the services use (insert/find/update/delete with the
query operators they send), so service and route tests run without MongoDB.
"""
import asyncio
import copy
import re
from datetime import datetime
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from models.order import Order
from models.settings import CompanyFees, FeeSettings
from utils.serializers import order_to_doc


def _matches(doc: dict, query: dict) -> bool:
    for key, cond in query.items():
        if key == "$or":
            if not any(_matches(doc, q) for q in cond):
                return False
            continue

        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$ne" and value == arg:
                    return False
                if op == "$in" and value not in arg:
                    return False
                if op == "$exists" and (key in doc) != arg:
                    return False
                if op == "$regex" and not (isinstance(value, str) and re.search(arg, value)):
                    return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key) or datetime.min, reverse=direction < 0)
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, unique_keys=()):
        self.docs = []
        self.unique_keys = unique_keys

    async def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        for key in self.unique_keys:
            if any(d.get(key) == doc.get(key) for d in self.docs):
                raise DuplicateKeyError(f"duplicate key {key}={doc.get(key)}")
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query):
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, query or {})])

    async def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if _matches(doc, query):
                before = copy.deepcopy(doc)
                doc.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=int(doc != before), upserted_id=None)

        if upsert:
            doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
            doc.update(copy.deepcopy(update.get("$set", {})))
            await self.insert_one(doc)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc.get("_id"))

        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query):
        keep = [d for d in self.docs if not _matches(d, query)]
        deleted = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=deleted)


class FakeDatabase:
    def __init__(self):
        self.orders = FakeCollection(unique_keys=("order_number",))
        self.wallet_transactions = FakeCollection(unique_keys=("id",))
        self.settings = FakeCollection()
        self.order_timeline = FakeCollection()
        self.audit_logs = FakeCollection()


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def settings():
    return FeeSettings(
        enable_insurance=True,
        insurance_fee_percent=2,
        enable_inspection=True,
        inspection_fee=20,
        enable_return_shipping=True,
        return_shipping_fee=30,
        enable_global_cod=True,
        cod_threshold=1000,
        cod_fee_rate=0.01,
        cod_tax_rate=0.14,
        company_fees={
            "Bosta": CompanyFees(
                use_custom_fees=True,
                insurance_fee_percent=1,
                inspection_fee=10,
                enable_fixed_return=True,
                return_shipping_fee=25,
                enable_cod_fees=False,
                post_collection_return_refunds_product_price=False,
            ),
            "Aramex": CompanyFees(use_custom_fees=False, insurance_fee_percent=9),
        },
    )


@pytest.fixture
def make_order():
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "id": str(ObjectId()),
            "order_number": f"ORD-{counter['n']}",
            "shipping_company": "Mylerz",
            "customer_name": "Mona",
            "product_price": 500,
            "product_cost": 300,
            "shipping_fee": 50,
            "created_at": datetime(2026, 1, 1),
            "updated_at": datetime(2026, 1, 1),
        }
        fields.update(overrides)
        return Order(**fields)

    return _make


@pytest.fixture
def store_order(db, run):
    def _store(order: Order) -> Order:
        doc = order_to_doc(order)
        doc["_id"] = ObjectId(order.id)
        run(db.orders.insert_one(doc))
        return order

    return _store
