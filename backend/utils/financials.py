import math

from models.order import Order, OrderStatus, PRE_SHIPMENT_STATUSES
from models.settings import FeeSettings, FeePolicy


def round_money(value: float) -> float:
    """Round half up to cents (round(x*100)/100 with ties going up)."""
    return math.floor(value * 100 + 0.5) / 100


# ==============================
# Fee policy resolver
# ==============================

def resolve_fee_policy(shipping_company: str, settings: FeeSettings) -> FeePolicy:
    """
    Effective fees for a shipping company.
    A company with use_custom_fees replaces every global fee group at once;
    otherwise each global group is gated by its own enable flag.
    Unknown companies fall back to the global settings.
    """
    company = settings.company_fees.get(shipping_company)

    if company is not None and company.use_custom_fees:
        return FeePolicy(
            insurance_rate=company.insurance_fee_percent,
            inspection_fee=company.inspection_fee,
            return_fee=company.return_shipping_fee if company.enable_fixed_return else 0,
            return_fee_enabled=company.enable_fixed_return,
            cod_enabled=company.enable_cod_fees,
            cod_threshold=company.cod_threshold,
            cod_rate=company.cod_fee_rate,
            cod_tax_rate=company.cod_tax_rate,
            refunds_product_price_after_collection=company.post_collection_return_refunds_product_price,
        )

    return FeePolicy(
        insurance_rate=settings.insurance_fee_percent if settings.enable_insurance else 0,
        inspection_fee=settings.inspection_fee if settings.enable_inspection else 0,
        return_fee=settings.return_shipping_fee if settings.enable_return_shipping else 0,
        return_fee_enabled=settings.enable_return_shipping,
        cod_enabled=settings.enable_global_cod,
        cod_threshold=settings.cod_threshold if settings.enable_global_cod else 0,
        cod_rate=settings.cod_fee_rate if settings.enable_global_cod else 0,
        cod_tax_rate=settings.cod_tax_rate if settings.enable_global_cod else 0,
        refunds_product_price_after_collection=True,
    )


# ==============================
# Order amounts
# ==============================

def amount_due(order: Order) -> float:
    """What the customer owes for the order itself (no inspection fee)."""
    if order.total_amount_override is not None:
        return order.total_amount_override
    return order.product_price + order.shipping_fee - (order.discount or 0)


def insurance_fee(order: Order, policy: FeePolicy) -> float:
    if not order.is_insured:
        return 0
    return (order.product_price + order.shipping_fee) * policy.insurance_rate / 100


# ==============================
# COD fee
# ==============================

def calculate_cod_fee(order: Order, policy: FeePolicy) -> float:
    """
    Carrier surcharge for collecting cash, charged only on the part of
    productPrice + shippingFee above the threshold, tax included.
    """
    if not policy.cod_enabled:
        return 0

    total = order.product_price + order.shipping_fee
    if total <= policy.cod_threshold:
        return 0

    taxable = total - policy.cod_threshold
    fee = taxable * policy.cod_rate
    return round_money(fee * (1 + policy.cod_tax_rate))


# ==============================
# Profit / loss
# ==============================

def calculate_order_profit_loss(order: Order, settings: FeeSettings) -> dict:
    """
    Signed outcome of an order in its current status.

    Pure: everything is derived from the stored order fields and the
    settings, so the figure can be recomputed at any time.
    """
    profit = 0
    loss = 0

    if order.status in PRE_SHIPMENT_STATUSES:
        return {"profit": 0, "loss": 0, "net": 0}

    policy = resolve_fee_policy(order.shipping_company, settings)
    insurance = insurance_fee(order, policy)
    inspection = policy.inspection_fee
    inspection_collected = inspection if order.inspection_fee_paid_by_customer else 0

    if order.status == OrderStatus.COLLECTED:
        cod_fee = calculate_cod_fee(order, policy)
        inspection_adjustment = 0 if order.inspection_fee_paid_by_customer else inspection
        margin = order.product_price - order.product_cost - insurance - inspection_adjustment - cod_fee
        # a collected order sold below its costs is reported as a loss
        if margin >= 0:
            profit = margin
        else:
            loss = -margin

    elif order.status in (OrderStatus.RETURNED, OrderStatus.DELIVERY_FAILED):
        loss = insurance + order.shipping_fee + inspection - inspection_collected

    elif order.status == OrderStatus.PARTIAL_RETURN:
        loss = insurance + inspection

    elif order.status == OrderStatus.RETURNED_AFTER_RECEIPT:
        return_fee = policy.return_fee if policy.return_fee_enabled else 0
        cod_fee = calculate_cod_fee(order, policy)
        loss = (
            order.product_cost
            + insurance
            + order.shipping_fee
            + inspection
            + return_fee
            + cod_fee
            - inspection_collected
        )

    return {"profit": profit, "loss": loss, "net": profit - loss}
