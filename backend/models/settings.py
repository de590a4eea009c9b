from pydantic import BaseModel, ConfigDict, Field
from typing import Dict

from config.constants import (
    DEFAULT_INSURANCE_FEE_PERCENT,
    DEFAULT_INSPECTION_FEE,
    DEFAULT_RETURN_SHIPPING_FEE,
    DEFAULT_COD_THRESHOLD,
    DEFAULT_COD_FEE_RATE,
    DEFAULT_COD_TAX_RATE,
)


class CompanyFees(BaseModel):
    """Fee schedule of one shipping company.

    Only consulted when ``use_custom_fees`` is set, and then as a whole:
    a company never mixes its own values with the global ones.
    """

    model_config = ConfigDict(frozen=True)

    use_custom_fees: bool = False

    insurance_fee_percent: float = Field(0, ge=0)
    inspection_fee: float = Field(0, ge=0)

    enable_fixed_return: bool = False
    return_shipping_fee: float = Field(0, ge=0)

    enable_cod_fees: bool = True
    cod_threshold: float = Field(0, ge=0)
    cod_fee_rate: float = Field(0, ge=0)
    cod_tax_rate: float = Field(0, ge=0)

    post_collection_return_refunds_product_price: bool = True


class FeeSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enable_insurance: bool = True
    insurance_fee_percent: float = Field(DEFAULT_INSURANCE_FEE_PERCENT, ge=0)

    enable_inspection: bool = False
    inspection_fee: float = Field(DEFAULT_INSPECTION_FEE, ge=0)

    enable_return_shipping: bool = False
    return_shipping_fee: float = Field(DEFAULT_RETURN_SHIPPING_FEE, ge=0)

    enable_global_cod: bool = False
    cod_threshold: float = Field(DEFAULT_COD_THRESHOLD, ge=0)
    cod_fee_rate: float = Field(DEFAULT_COD_FEE_RATE, ge=0)
    cod_tax_rate: float = Field(DEFAULT_COD_TAX_RATE, ge=0)

    company_fees: Dict[str, CompanyFees] = {}


class FeePolicy(BaseModel):
    """Effective fees for one order, after resolving company overrides."""

    model_config = ConfigDict(frozen=True)

    insurance_rate: float = 0
    inspection_fee: float = 0
    return_fee: float = 0
    return_fee_enabled: bool = False
    cod_enabled: bool = False
    cod_threshold: float = 0
    cod_rate: float = 0
    cod_tax_rate: float = 0
    refunds_product_price_after_collection: bool = True
