"""
Order service against the in-memory store: lookups, commits, guard races.
"""
import pytest
from bson import ObjectId

from models.order import OrderCreate, OrderStatus, OrderType, PaymentStatus
from models.wallet import Transaction, TransactionCategory, TransactionType
from utils import order_service
from utils.order_transitions import TransitionOutcome
from utils.wallet_service import add_transactions


def _txn_ids(db):
    return sorted(d["id"] for d in db.wallet_transactions.docs)


def _stored(db, run, order_id):
    return run(order_service.get_order(db, order_id))


def test_missing_order_is_not_found(db, run, settings):
    result = run(order_service.update_order_status(db, str(ObjectId()), OrderStatus.IN_TRANSIT, settings))

    assert result.outcome == TransitionOutcome.NOT_FOUND
    assert db.wallet_transactions.docs == []


def test_malformed_id_is_not_found(db, run, settings):
    result = run(order_service.collect(db, "not-an-id", settings))
    assert result.outcome == TransitionOutcome.NOT_FOUND


def test_shipping_persists_flags_and_transactions(db, run, settings, make_order, store_order):
    order = store_order(make_order(waybill_number="WB-1"))

    result = run(order_service.update_order_status(db, order.id, OrderStatus.SHIPPED, settings))

    assert result.outcome == TransitionOutcome.APPLIED
    assert _txn_ids(db) == sorted([f"ship_{order.id}", f"insure_{order.id}"])
    stored = _stored(db, run, order.id)
    assert stored.status == OrderStatus.SHIPPED
    assert stored.shipping_and_insurance_deducted is True
    assert db.order_timeline.docs[-1]["event"] == "ORDER_STATUS_CHANGED"


def test_repeated_shipping_posts_once(db, run, settings, make_order, store_order):
    order = store_order(make_order(waybill_number="WB-1"))

    run(order_service.update_order_status(db, order.id, OrderStatus.SHIPPED, settings))
    run(order_service.update_order_status(db, order.id, OrderStatus.IN_TRANSIT, settings))
    again = run(order_service.update_order_status(db, order.id, OrderStatus.SHIPPED, settings))

    assert again.outcome == TransitionOutcome.APPLIED
    assert again.transactions == []
    assert len(db.wallet_transactions.docs) == 2


def test_waybill_required_changes_nothing(db, run, settings, make_order, store_order):
    order = store_order(make_order())

    result = run(order_service.update_order_status(db, order.id, OrderStatus.SHIPPED, settings))

    assert result.outcome == TransitionOutcome.WAYBILL_REQUIRED
    assert _stored(db, run, order.id).status == OrderStatus.AWAITING_CALL
    assert db.wallet_transactions.docs == []


def test_lost_race_posts_nothing(db, run, settings, make_order, store_order, monkeypatch):
    stale = make_order(status=OrderStatus.DELIVERED)
    store_order(stale.model_copy(update={"collection_processed": True}))

    async def stale_read(_db, _order_id):
        return stale

    monkeypatch.setattr(order_service, "get_order", stale_read)
    result = run(order_service.collect(db, stale.id, settings))

    assert result.outcome == TransitionOutcome.CONFLICT
    assert db.wallet_transactions.docs == []


def test_duplicate_transaction_id_is_skipped(db, run):
    txn = Transaction(
        id="ship_abc",
        type=TransactionType.WITHDRAWAL,
        amount=50,
        category=TransactionCategory.SHIPPING,
        created_at="2026-01-01T00:00:00",
    )
    assert run(add_transactions(db, [txn])) == [txn]
    assert run(add_transactions(db, [txn])) == []
    assert len(db.wallet_transactions.docs) == 1


def test_negative_amount_rejected(db, run):
    txn = Transaction.model_construct(
        id="x",
        type=TransactionType.DEPOSIT,
        amount=-1,
        category=TransactionCategory.MANUAL_DEPOSIT,
    )
    with pytest.raises(ValueError):
        run(add_transactions(db, [txn]))


# ────────────────────────────────────────────
# COLLECTION VIA PAYMENT STATUS
# ────────────────────────────────────────────


def test_paid_on_delivered_order_collects(db, run, settings, make_order, store_order):
    order = store_order(make_order(status=OrderStatus.DELIVERED, include_inspection_fee=True))

    result = run(order_service.update_payment_status(
        db, order.id, PaymentStatus.PAID, settings, customer_paid_inspection=True,
    ))

    assert result.outcome == TransitionOutcome.APPLIED
    stored = _stored(db, run, order.id)
    assert stored.status == OrderStatus.COLLECTED
    assert stored.collection_processed is True
    assert stored.inspection_fee_paid_by_customer is True
    deposit = next(d for d in db.wallet_transactions.docs if d["category"] == "collection")
    assert deposit["amount"] == 570


def test_second_collection_already_processed(db, run, settings, make_order, store_order):
    order = store_order(make_order(status=OrderStatus.DELIVERED))

    run(order_service.collect(db, order.id, settings))
    again = run(order_service.collect(db, order.id, settings))

    assert again.outcome == TransitionOutcome.ALREADY_PROCESSED
    assert len(db.wallet_transactions.docs) == 1


def test_plain_payment_status_change(db, run, settings, make_order, store_order):
    order = store_order(make_order(status=OrderStatus.IN_PROGRESS))

    result = run(order_service.update_payment_status(db, order.id, PaymentStatus.PARTIALLY_PAID, settings))

    assert result.outcome == TransitionOutcome.APPLIED
    assert _stored(db, run, order.id).payment_status == PaymentStatus.PARTIALLY_PAID
    assert db.wallet_transactions.docs == []


# ────────────────────────────────────────────
# RETURN AFTER COLLECTION
# ────────────────────────────────────────────


def test_return_after_collection_flow(db, run, settings, make_order, store_order):
    order = store_order(make_order(status=OrderStatus.COLLECTED))

    preview = run(order_service.return_after_collection(db, order.id, settings))
    assert preview.outcome == TransitionOutcome.CONFIRMATION_REQUIRED
    assert db.wallet_transactions.docs == []

    done = run(order_service.return_after_collection(db, order.id, settings, confirm=True))
    assert done.outcome == TransitionOutcome.APPLIED
    assert _stored(db, run, order.id).status == OrderStatus.RETURNED_AFTER_RECEIPT
    assert sum(d["amount"] for d in db.wallet_transactions.docs) == 580


# ────────────────────────────────────────────
# INTAKE / EXCHANGE
# ────────────────────────────────────────────


def _order_data(**kw):
    base = dict(
        shipping_company="Mylerz",
        customer_name="Salma",
        customer_phone="0100",
        product_price=200,
        shipping_fee=50,
    )
    base.update(kw)
    return OrderCreate(**base)


def test_create_standard_order(db, run, settings):
    result = run(order_service.create_order(db, _order_data(order_number="ORD-77"), settings))

    assert result.outcome == TransitionOutcome.APPLIED
    stored = _stored(db, run, result.order.id)
    assert stored.order_number == "ORD-77"
    assert stored.status == OrderStatus.AWAITING_CALL
    assert db.order_timeline.docs[-1]["event"] == "ORDER_CREATED"


def test_create_exchange_order(db, run, settings, make_order, store_order):
    original = store_order(make_order(status=OrderStatus.COLLECTED, product_price=250, shipping_fee=50))

    result = run(order_service.create_order(
        db,
        _order_data(order_type=OrderType.EXCHANGE, original_order_id=original.id),
        settings,
    ))

    assert result.outcome == TransitionOutcome.APPLIED
    replacement = _stored(db, run, result.order.id)
    assert replacement.total_amount_override == -50
    assert replacement.payment_status == PaymentStatus.PAID
    assert _stored(db, run, original.id).status == OrderStatus.EXCHANGED
    assert {d["event"] for d in db.order_timeline.docs} == {"ORDER_EXCHANGED", "ORDER_CREATED"}


def test_duplicate_order_number_is_conflict(db, run, settings, make_order, store_order):
    store_order(make_order(order_number="DUP"))

    result = run(order_service.create_order(db, _order_data(order_number="DUP"), settings))

    assert result.outcome == TransitionOutcome.CONFLICT
    assert "DUP" in result.message
    assert len(db.orders.docs) == 1


def test_exchange_with_taken_number_keeps_original(db, run, settings, make_order, store_order):
    store_order(make_order(order_number="DUP"))
    original = store_order(make_order(status=OrderStatus.COLLECTED))

    result = run(order_service.create_order(
        db,
        _order_data(order_number="DUP", order_type=OrderType.EXCHANGE, original_order_id=original.id),
        settings,
    ))

    assert result.outcome == TransitionOutcome.CONFLICT
    assert _stored(db, run, original.id).status == OrderStatus.COLLECTED
    assert len(db.orders.docs) == 2
    assert db.order_timeline.docs == []


def test_exchange_losing_race_removes_replacement(db, run, settings, make_order, store_order, monkeypatch):
    stale = make_order(status=OrderStatus.COLLECTED)
    store_order(stale.model_copy(update={"status": OrderStatus.RETURNED_AFTER_RECEIPT}))
    real_get_order = order_service.get_order

    async def stale_read(_db, order_id):
        if order_id == stale.id:
            return stale
        return await real_get_order(_db, order_id)

    monkeypatch.setattr(order_service, "get_order", stale_read)
    result = run(order_service.create_order(
        db,
        _order_data(order_type=OrderType.EXCHANGE, original_order_id=stale.id),
        settings,
    ))

    assert result.outcome == TransitionOutcome.CONFLICT
    assert [d["_id"] for d in db.orders.docs] == [ObjectId(stale.id)]
    assert db.orders.docs[0]["status"] == OrderStatus.RETURNED_AFTER_RECEIPT.value


def test_exchange_with_missing_original(db, run, settings):
    result = run(order_service.create_order(
        db,
        _order_data(order_type=OrderType.EXCHANGE, original_order_id=str(ObjectId())),
        settings,
    ))

    assert result.outcome == TransitionOutcome.NOT_FOUND
    assert db.orders.docs == []


def test_exchange_without_original_id(db, run, settings):
    result = run(order_service.create_order(db, _order_data(order_type=OrderType.EXCHANGE), settings))
    assert result.outcome == TransitionOutcome.NOT_ELIGIBLE


# ────────────────────────────────────────────
# DELETE / FINANCIALS
# ────────────────────────────────────────────


def test_delete_removes_only_own_transactions(db, run, settings, make_order, store_order):
    first = store_order(make_order(order_number="ORD-1", status=OrderStatus.DELIVERED))
    second = store_order(make_order(order_number="ORD-10", status=OrderStatus.DELIVERED))
    run(order_service.collect(db, first.id, settings))
    run(order_service.collect(db, second.id, settings))

    # legacy entry linked only through its note
    legacy = Transaction(
        id="legacy_1",
        type=TransactionType.WITHDRAWAL,
        amount=5,
        category=TransactionCategory.SHIPPING,
        note="خصم مصاريف شحن أوردر #ORD-1",
        created_at="2026-01-01T00:00:00",
    )
    run(add_transactions(db, [legacy]))

    removed = run(order_service.delete_order(db, first.id))

    assert removed == 2
    assert _txn_ids(db) == [f"collect_{second.id}"]
    assert run(order_service.get_order(db, first.id)) is None


def test_delete_unknown_order(db, run):
    assert run(order_service.delete_order(db, str(ObjectId()))) is None


def test_order_financials(db, run, settings, make_order, store_order):
    order = store_order(make_order(status=OrderStatus.COLLECTED))

    financials = run(order_service.get_order_financials(db, order.id, settings))

    assert financials["profit"] == pytest.approx(169)
    assert run(order_service.get_order_financials(db, str(ObjectId()), settings)) is None
