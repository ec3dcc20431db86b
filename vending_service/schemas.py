# vending_service/schemas.py

"""
Pydantic schemas for the Vending Service API.
These define the data structures for incoming requests and outgoing responses,
ensuring data validation and clear API contracts. JSON keys are camelCase.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Schema for a catalogue entry, used when seeding the machine.
class ProductCreate(CamelModel):
    id: str = Field(..., min_length=1, max_length=64, description="Stable product identifier.")
    name: str = Field(..., min_length=1, max_length=255, description="Display name of the product.")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit price. Must be non-negative.")
    stock: int = Field(..., ge=0, description="Units available. Must be non-negative.")


# Schema for representing a product in API responses.
# Used in GET /products.
class ProductResponse(CamelModel):
    id: str = Field(..., description="Unique identifier of the product.")
    name: str = Field(..., description="Display name of the product.")
    price: float = Field(..., description="Unit price of the product.")
    stock: int = Field(..., description="Units currently available.")

    model_config = ConfigDict(from_attributes=True)


# Body of POST /products/purchase.
# Both fields are optional here so that missing values reach the purchase
# validation step and come back as 400 instead of 422.
class PurchaseRequest(CamelModel):
    product_id: Optional[str] = Field(None, description="Identifier of the product to buy.")
    quantity: Optional[StrictInt] = Field(None, description="Number of units to buy.")


# Body returned by POST /products/purchase, on success and on rejection.
class PurchaseResponse(CamelModel):
    success: bool
    message: str
    remaining: Optional[int] = Field(None, description="Stock left after the purchase, or current stock on rejection.")
    quantity_purchased: Optional[int] = None
    total_cost: Optional[float] = None
    retry_after: Optional[float] = Field(None, description="Seconds until the machine accepts another purchase.")


# Schema for an audit record in API responses.
# Used in GET /products/purchases.
class PurchaseRecordResponse(CamelModel):
    id: int
    product_id: str
    product_name: str
    quantity: int
    amount: float
    purchase_time: datetime
    machine_id: str

    model_config = ConfigDict(from_attributes=True)

    @field_validator("purchase_time")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Some backends (SQLite) hand back naive datetimes; they are stored as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SortField(str, Enum):
    AMOUNT = "amount"
    PRODUCT = "product"
    DATE = "date"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PurchaseFilter(BaseModel):
    """
    Filter and sort options for the purchase history.
    Unrecognized sort values fall back to the defaults rather than failing,
    so stale clients still get a usable listing.
    """

    search_term: Optional[str] = None
    machine_id: Optional[str] = None
    hours: Optional[float] = None
    sort_field: SortField = SortField.DATE
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("search_term", "machine_id", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("hours")
    @classmethod
    def non_positive_hours_disable(cls, value: Optional[float]) -> Optional[float]:
        # inf and nan give no usable window either
        if value is not None and (not math.isfinite(value) or value <= 0):
            return None
        return value

    @field_validator("sort_field", mode="before")
    @classmethod
    def parse_sort_field(cls, value):
        if isinstance(value, SortField):
            return value
        try:
            return SortField(str(value).strip().lower())
        except ValueError:
            return SortField.DATE

    @field_validator("sort_order", mode="before")
    @classmethod
    def parse_sort_order(cls, value):
        if isinstance(value, SortOrder):
            return value
        try:
            return SortOrder(str(value).strip().lower())
        except ValueError:
            # Unknown values sort descending, the same as an absent value.
            return SortOrder.DESC


class BalanceResponse(BaseModel):
    balance: float
