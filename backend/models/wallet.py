from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class TransactionType(str, Enum):
    DEPOSIT = "إيداع"
    WITHDRAWAL = "سحب"


class TransactionCategory(str, Enum):
    SHIPPING = "shipping"
    INSURANCE = "insurance"
    INSPECTION = "inspection"
    COLLECTION = "collection"
    COD = "cod"
    RETURN = "return"
    MANUAL_DEPOSIT = "manual_deposit"
    MANUAL_WITHDRAWAL = "manual_withdrawal"
    EXPENSE_ADS = "expense_ads"
    EXPENSE_SALARY = "expense_salary"
    EXPENSE_RENT = "expense_rent"
    EXPENSE_OTHER = "expense_other"
    INVENTORY_PURCHASE = "inventory_purchase"


EXPENSE_CATEGORIES = {
    TransactionCategory.EXPENSE_ADS,
    TransactionCategory.EXPENSE_SALARY,
    TransactionCategory.EXPENSE_RENT,
    TransactionCategory.EXPENSE_OTHER,
}


class Transaction(BaseModel):
    id: str
    type: TransactionType
    amount: float = Field(..., ge=0)
    category: TransactionCategory
    note: str = ""
    order_id: Optional[str] = None
    created_at: datetime


class ManualTransactionCreate(BaseModel):
    type: TransactionType
    amount: float = Field(..., gt=0)
    category: Optional[TransactionCategory] = None
    note: str = ""
