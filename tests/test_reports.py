from datetime import datetime

import pytest

from models.order import OrderStatus
from models.wallet import Transaction, TransactionCategory, TransactionType
from utils.reports import build_financial_report, get_financial_report


def test_financial_report(make_order, settings):
    orders = [
        make_order(status=OrderStatus.COLLECTED, shipping_company="Mylerz"),
        make_order(status=OrderStatus.COLLECTED, shipping_company="Mylerz", discount=50),
        make_order(status=OrderStatus.RETURNED, shipping_company="Bosta"),
        make_order(status=OrderStatus.AWAITING_CALL, shipping_company="Bosta"),
    ]
    expenses = [
        Transaction(
            id="ads_1",
            type=TransactionType.WITHDRAWAL,
            amount=40,
            category=TransactionCategory.EXPENSE_ADS,
            created_at=datetime(2026, 1, 1),
        ),
        Transaction(
            id="ship_x",
            type=TransactionType.WITHDRAWAL,
            amount=50,
            category=TransactionCategory.SHIPPING,
            created_at=datetime(2026, 1, 1),
        ),
    ]

    report = build_financial_report(orders, settings, expenses)

    assert report["total_orders"] == 4
    assert report["total_revenue"] == 550 + 500
    assert report["avg_order_value"] == 525
    # two collected orders at 169 each
    assert report["total_profit"] == pytest.approx(338)
    # Bosta return: 5.5 insurance + 50 shipping + 10 inspection
    assert report["total_loss"] == pytest.approx(65.5)
    assert report["total_expenses"] == 40
    assert report["net_financial"] == pytest.approx(338 - 65.5 - 40)

    performance = {p["name"]: p for p in report["shipping_performance"]}
    assert performance["Mylerz"]["success_rate"] == 100
    assert performance["Bosta"]["count"] == 2
    assert performance["Bosta"]["success_rate"] == 0


def test_empty_report(settings):
    report = build_financial_report([], settings, [])

    assert report["avg_order_value"] == 0
    assert report["net_financial"] == 0
    assert report["shipping_performance"] == []


def test_report_from_store(db, run, settings, make_order, store_order):
    store_order(make_order(status=OrderStatus.COLLECTED))

    report = run(get_financial_report(db, settings))

    assert report["total_orders"] == 1
    assert report["total_profit"] == pytest.approx(169)
