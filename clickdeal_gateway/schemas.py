from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Inbound ---
class OrderRequest(CamelModel):
    name: StrictStr = Field(min_length=1)
    phone: StrictStr = Field(min_length=1)
    address: StrictStr = Field(min_length=1)
    city: StrictStr = Field(min_length=1)
    product_handle: StrictStr = Field(min_length=1)
    quantity: StrictInt | StrictFloat
    variant_id: str | int | None = None


# --- Catalog ---
class VariantSummary(CamelModel):
    id: str
    title: str | None = None
    price: str | None = None
    inventory_quantity: int | None = None


class ProductSummary(CamelModel):
    title: str | None = None
    handle: str | None = None
    variants: list[VariantSummary] = []


class ProductList(BaseModel):
    count: int
    products: list[ProductSummary]


class Money(CamelModel):
    amount: str
    currency_code: str


class PriceQuote(CamelModel):
    product_handle: str
    product_title: str | None = None
    variant_id: str
    variant_title: str | None = None
    price: Money


class StockLevel(CamelModel):
    variant_id: str
    quantity: int | None = None
    tracked: bool = True


# --- Orders ---
class DraftOrderResult(BaseModel):
    id: str
    invoice_url: str | None = Field(default=None, alias="invoiceUrl")
    name: str | None = None


class OrderCreated(CamelModel):
    ok: bool = True
    draft_order_id: str
    invoice_url: str | None = None


# --- Monitoring ---
class HealthStatus(BaseModel):
    ok: bool = True
    ts: datetime
