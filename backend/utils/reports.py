from typing import Iterable, List

from models.order import Order, OrderStatus
from models.settings import FeeSettings
from models.wallet import EXPENSE_CATEGORIES, Transaction
from utils.financials import calculate_order_profit_loss
from utils.order_service import list_orders
from utils.wallet_service import list_transactions

SUCCESSFUL_STATUSES = {OrderStatus.COLLECTED, OrderStatus.DELIVERED}


def build_financial_report(
    orders: List[Order],
    settings: FeeSettings,
    transactions: Iterable[Transaction],
) -> dict:
    collected = [o for o in orders if o.status == OrderStatus.COLLECTED]
    total_revenue = sum(o.product_price + o.shipping_fee - (o.discount or 0) for o in collected)
    avg_order_value = total_revenue / len(collected) if collected else 0

    total_profit = 0
    total_loss = 0
    for order in orders:
        net = calculate_order_profit_loss(order, settings)["net"]
        if net > 0:
            total_profit += net
        else:
            total_loss += abs(net)

    total_expenses = sum(t.amount for t in transactions if t.category in EXPENSE_CATEGORIES)

    companies = {}
    for order in orders:
        stats = companies.setdefault(order.shipping_company, {"count": 0, "successful": 0})
        stats["count"] += 1
        if order.status in SUCCESSFUL_STATUSES:
            stats["successful"] += 1

    shipping_performance = [
        {
            "name": name,
            "count": stats["count"],
            "success_rate": stats["successful"] / stats["count"] * 100,
        }
        for name, stats in companies.items()
        if name
    ]
    shipping_performance.sort(key=lambda s: s["count"], reverse=True)

    return {
        "total_revenue": total_revenue,
        "total_orders": len(orders),
        "avg_order_value": avg_order_value,
        "total_profit": total_profit,
        "total_loss": total_loss,
        "total_expenses": total_expenses,
        "net_financial": total_profit - total_loss - total_expenses,
        "shipping_performance": shipping_performance,
    }


async def get_financial_report(db, settings: FeeSettings) -> dict:
    orders = await list_orders(db)
    transactions = await list_transactions(db)
    return build_financial_report(orders, settings, transactions)
