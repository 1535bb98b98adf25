"""
Typed view of the payload returned by the extraction service.

Defaults are resolved here, once, when a response is parsed: missing or null
strings become "", missing or unparseable numbers become 0.0. Unknown keys
are kept so the stored payload stays verbatim.
"""

from typing import Annotated, Any

from loguru import logger
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

_CURRENCY_TOKENS = ("USD", "AUD", "EUR", "GBP", "CAD", "JPY", "CNY")


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        # Handle currency symbols, currency codes, and thousands separators
        # Examples: "$123.45", "USD 123.45", "1,234.56"
        text = str(value).replace("$", "").replace(",", "")
        for code in _CURRENCY_TOKENS:
            text = text.replace(code, "")
        text = text.strip()
        return float(text) if text else 0.0
    except (ValueError, TypeError):
        logger.warning("Could not parse numeric field from extraction payload", value=value)
        return 0.0


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


Amount = Annotated[float, BeforeValidator(_to_float)]
Text = Annotated[str, BeforeValidator(_to_str)]


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null means "absent": let the field default apply
        if data is None:
            return {}
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class InvoiceMetadata(_Section):
    invoice_number: Text = ""
    invoice_date: Text = ""
    due_date: Text = ""


class ContactInfo(_Section):
    address: Text = ""
    phone: Text = ""
    email: Text = ""


class PartyInformation(_Section):
    company_name: Text = ""
    contact_info: ContactInfo = Field(default_factory=ContactInfo)


class FinancialSummary(_Section):
    subtotal: Amount = 0.0
    tax_amount: Amount = 0.0
    total_amount: Amount = 0.0
    currency: Text = ""


class LineItem(_Section):
    description: Text = ""
    quantity: Amount = 0.0
    unit_price: Amount = 0.0
    total_price: Amount = 0.0
    unit: Text = ""

    @model_validator(mode="after")
    def _derive_total(self) -> "LineItem":
        if not self.total_price:
            self.total_price = round(self.quantity * self.unit_price, 2)
        return self


class CommodityDetails(_Section):
    items: list[LineItem] = Field(default_factory=list)
    total_items: int = 0

    @model_validator(mode="after")
    def _derive_count(self) -> "CommodityDetails":
        if not self.total_items:
            self.total_items = len(self.items)
        return self


class ExtractedInvoice(_Section):
    invoice_metadata: InvoiceMetadata = Field(default_factory=InvoiceMetadata)
    vendor_information: PartyInformation = Field(default_factory=PartyInformation)
    customer_information: PartyInformation = Field(default_factory=PartyInformation)
    financial_summary: FinancialSummary = Field(default_factory=FinancialSummary)
    commodity_details: CommodityDetails = Field(default_factory=CommodityDetails)
    processing_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def invoice_number(self) -> str:
        return self.invoice_metadata.invoice_number.strip()

    @property
    def total_amount(self) -> float:
        return self.financial_summary.total_amount
