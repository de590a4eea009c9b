from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    AWAITING_CALL = "في_انتظار_المكالمة"
    UNDER_REVIEW = "جاري_المراجعة"
    IN_PROGRESS = "قيد_التنفيذ"
    SHIPPED = "تم_الارسال"
    IN_TRANSIT = "قيد_الشحن"
    DELIVERED = "تم_توصيلها"
    COLLECTED = "تم_التحصيل"
    RETURNED = "مرتجع"
    PARTIAL_RETURN = "مرتجع_جزئي"
    DELIVERY_FAILED = "فشل_التوصيل"
    CANCELED = "ملغي"
    ARCHIVED = "مؤرشف"
    RETURNED_AFTER_RECEIPT = "مرتجع_بعد_الاستلام"
    EXCHANGED = "تم_الاستبدال"


class PaymentStatus(str, Enum):
    PENDING = "بانتظار الدفع"
    PAID = "مدفوع"
    PARTIALLY_PAID = "مدفوع جزئياً"
    REFUNDED = "مرتجع"


class OrderType(str, Enum):
    STANDARD = "standard"
    EXCHANGE = "exchange"


# Statuses that carry no profit or loss yet
PRE_SHIPMENT_STATUSES = {
    OrderStatus.AWAITING_CALL,
    OrderStatus.UNDER_REVIEW,
    OrderStatus.IN_PROGRESS,
    OrderStatus.CANCELED,
}

SHIPPED_LIKE_STATUSES = {OrderStatus.SHIPPED, OrderStatus.IN_TRANSIT}
RETURN_FEE_STATUSES = {OrderStatus.RETURNED, OrderStatus.DELIVERY_FAILED}
TERMINAL_STATUSES = {OrderStatus.EXCHANGED}


class OrderItem(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(1, gt=0)
    price: float = Field(0, ge=0)
    cost: float = Field(0, ge=0)
    weight: float = Field(0, ge=0)
    variant_id: Optional[str] = None
    variant_description: Optional[str] = None


class Order(BaseModel):
    id: str
    order_number: str
    waybill_number: Optional[str] = None

    shipping_company: str = ""
    shipping_area: str = ""

    customer_name: str = ""
    customer_phone: str = ""
    customer_address: str = ""
    notes: str = ""

    items: List[OrderItem] = []
    product_name: str = ""
    weight: float = 0

    status: OrderStatus = OrderStatus.AWAITING_CALL
    payment_status: PaymentStatus = PaymentStatus.PENDING

    product_price: float = 0
    product_cost: float = 0
    shipping_fee: float = 0
    discount: float = 0
    total_amount_override: Optional[float] = None

    include_inspection_fee: bool = False
    # Orders stored before insurance became optional are insured
    is_insured: bool = True

    # guard flags: once true, the matching ledger category is never posted again
    shipping_and_insurance_deducted: bool = False
    inspection_fee_deducted: bool = False
    inspection_fee_paid_by_customer: bool = False
    return_fee_deducted: bool = False
    collection_processed: bool = False

    order_type: OrderType = OrderType.STANDARD
    original_order_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ======================================================
# REQUEST SCHEMAS
# ======================================================

class OrderCreate(BaseModel):
    order_number: Optional[str] = None
    shipping_company: str
    shipping_area: str = ""

    customer_name: str
    customer_phone: str
    customer_phone2: Optional[str] = None
    customer_address: str = ""
    notes: str = ""

    items: List[OrderItem] = []
    product_price: float = Field(0, ge=0)
    product_cost: float = Field(0, ge=0)
    shipping_fee: float = Field(0, ge=0)
    discount: float = Field(0, ge=0)

    include_inspection_fee: bool = False
    is_insured: bool = True

    order_type: OrderType = OrderType.STANDARD
    original_order_id: Optional[str] = None


class StatusChange(BaseModel):
    status: OrderStatus
    waybill_number: Optional[str] = None


class PaymentStatusChange(BaseModel):
    payment_status: PaymentStatus
    customer_paid_inspection: bool = False


class CollectRequest(BaseModel):
    customer_paid_inspection: bool = False


class PostCollectionReturnRequest(BaseModel):
    confirm: bool = False
