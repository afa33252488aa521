# backend/app/schemas/order_schema.py
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.order import MAX_PRICE, MAX_QTY

ID_REGEX = r"^[0-9a-fA-F]{24}$"

SortField = Literal["order_no", "customer_name", "order_date", "grand_total"]
SortDir = Literal["asc", "desc"]


# --- request bodies ---

class OrderLineIn(BaseModel):
    # unknown keys (e.g. a client-computed subtotal) are dropped
    model_config = ConfigDict(str_strip_whitespace=True)
    product_name: str = Field(..., min_length=1)
    qty: int = Field(..., ge=1, le=MAX_QTY)
    price: float = Field(..., ge=0, le=MAX_PRICE, allow_inf_nan=False)


def _date_part(value):
    """ISO timestamps (e.g. JS `toISOString()`) are cut down to their calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class OrderIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    customer_name: str = Field(..., min_length=1)
    order_date: date
    products: List[OrderLineIn] = Field(..., min_length=1)

    @field_validator("order_date", mode="before")
    @classmethod
    def date_only(cls, value):
        return _date_part(value)


# --- query strings ---

class PageQuery(BaseModel):
    page: int = Field(1, ge=1)
    sort: Optional[SortField] = None
    dir: Optional[SortDir] = None


class SearchQuery(PageQuery):
    model_config = ConfigDict(str_strip_whitespace=True)
    order_no: str = Field(..., min_length=1)


class DateFilterQuery(PageQuery):
    start_date: date
    end_date: date

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def date_only(cls, value):
        return _date_part(value)

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, end, info):
        start = info.data.get("start_date")
        if start is not None and end < start:
            raise ValueError("End date must be greater than or equal to start date")
        return end


class ExportQuery(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    order_no: Optional[str] = None
    sort: Optional[SortField] = None
    dir: Optional[SortDir] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def date_only(cls, value):
        return _date_part(value)

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, end, info):
        start = info.data.get("start_date")
        if end is not None and start is not None and end < start:
            raise ValueError("End date must be greater than or equal to start date")
        return end


# --- responses ---

class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    order_id: str
    product_name: str
    qty: int
    price: float
    subtotal: float


class OrderSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    order_no: str
    customer_name: str
    order_date: date
    grand_total: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderOut(OrderSummaryOut):
    products: List[OrderLineOut] = []


class OrderPageOut(BaseModel):
    items: List[OrderSummaryOut]
    page: int
    pages: int
    total: int
