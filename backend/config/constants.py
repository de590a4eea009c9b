# backend/config/constants.py

# -----------------------------
# DEFAULT FEE SETTINGS
# -----------------------------
# Used until the merchant saves their own fee schedule.

DEFAULT_INSURANCE_FEE_PERCENT = 1.0
DEFAULT_INSPECTION_FEE = 0.0
DEFAULT_RETURN_SHIPPING_FEE = 0.0

DEFAULT_COD_THRESHOLD = 0.0
DEFAULT_COD_FEE_RATE = 0.0
DEFAULT_COD_TAX_RATE = 0.0

SETTINGS_DOC_ID = "fees"

# -----------------------------
# ORDER NUMBERS
# -----------------------------

ORDER_NUMBER_PREFIX = "ORD-"

# -----------------------------
# LEDGER NOTES
# -----------------------------
# "#{order_number}" must stay in every order note: deletion cleanup matches on it.

NOTE_SHIPPING = "خصم مصاريف شحن أوردر #{order_number}"
NOTE_INSURANCE = "خصم رسوم تأمين أوردر #{order_number}"
NOTE_INSPECTION = "خصم رسوم معاينة أوردر #{order_number}"
NOTE_RETURN = "خصم مصاريف مرتجع أوردر #{order_number}"
NOTE_COLLECTION = "إيداع مبلغ تحصيل أوردر #{order_number}"
NOTE_COD = "خصم رسوم COD أوردر #{order_number}"
NOTE_POST_RETURN_REFUND = "إرجاع مبلغ للعميل بعد استلام الطلب #{order_number}"
NOTE_POST_RETURN_FEE = "مصاريف شحن مرتجع بعد الاستلام للطلب #{order_number}"
NOTE_EXCHANGE = "طلب استبدال للطلب #{original_order_id}. تم تطبيق رصيد بقيمة {credit} {currency}."
