# bakery_orders/models.py
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .pricing import MAX_QUANTITY, MAX_SUBTOTAL, MAX_UNIT_PRICE, compute_subtotal

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "ready", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

STATUS_LABELS = {
    "pending": "Menunggu Konfirmasi",
    "confirmed": "Dikonfirmasi",
    "processing": "Diproses",
    "shipped": "Dikirim",
    "ready": "Siap Diambil",
    "completed": "Selesai",
    "cancelled": "Dibatalkan",
}


class CamelModel(BaseModel):
    # accepts both camelCase (storefront JSON) and snake_case (db rows)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


# Requests

class ShippingIn(CamelModel):
    full_name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=1, max_length=30)
    email: Optional[EmailStr] = None
    address: str = Field(min_length=1, max_length=300)
    city: str = Field(min_length=1, max_length=100)
    province: Optional[str] = Field(default=None, max_length=50)  # shipping region key
    postal_code: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("email", "province", "postal_code", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class OrderItemIn(CamelModel):
    product_id: str = Field(min_length=1, max_length=100)
    variant_id: Optional[str] = Field(default=None, max_length=100)
    product_name: str = Field(min_length=1, max_length=200)
    variant_name: Optional[str] = Field(default=None, max_length=200)
    price: int = Field(ge=0, le=MAX_UNIT_PRICE)
    quantity: int = Field(gt=0, le=MAX_QUANTITY)


class OrderIn(CamelModel):
    shipping: ShippingIn
    payment_method: str = Field(default="whatsapp", pattern="^(whatsapp|online)$")
    items: List[OrderItemIn] = Field(min_length=1)

    @model_validator(mode="after")
    def subtotal_in_range(self):
        if compute_subtotal(self.items) > MAX_SUBTOTAL:
            raise ValueError(f"order subtotal exceeds Rp{MAX_SUBTOTAL:,}")
        return self


class QuoteItemIn(CamelModel):
    price: int = Field(ge=0, le=MAX_UNIT_PRICE)
    quantity: int = Field(gt=0, le=MAX_QUANTITY)


class QuoteIn(CamelModel):
    items: List[QuoteItemIn] = []
    region: Optional[str] = None


class StatusPatch(CamelModel):
    # blank strings count as "not given"; the service checks at least one is set
    status: Optional[str] = None
    payment_status: Optional[str] = None


class BulkDeleteIn(BaseModel):
    ids: List[int] = []


class SettingsPatch(BaseModel):
    settings: Dict[str, Optional[str | int | float]]


# Responses

class QuoteOut(CamelModel):
    subtotal: int
    tax_rate: float
    tax_amount: int
    shipping_fee: Optional[int]
    shipping_pending: bool
    total: int


class OrderCreatedOut(CamelModel):
    id: int
    order_number: str
    subtotal: int
    tax_amount: int
    shipping_cost: int
    shipping_pending: bool
    total_amount: int
    whatsapp_url: str


class OrderItemOut(CamelModel):
    id: int
    product_id: str
    variant_id: Optional[str] = None
    product_name: str
    variant_name: Optional[str] = None
    unit_price: int
    quantity: int
    line_subtotal: int
    created_at: Optional[datetime] = None


class OrderPublicOut(CamelModel):
    id: int
    order_number: str
    status: str
    status_label: str = ""
    payment_method: str
    payment_status: str
    subtotal: int
    tax_amount: int
    shipping_cost: int
    shipping_pending: bool = False
    discount_amount: int
    total_amount: int
    customer_name: str
    customer_phone: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: Optional[str] = None
    shipping_province: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderAdminOut(OrderPublicOut):
    customer_email: Optional[str] = None
    customer_notes: Optional[str] = None


class OrderListRowOut(CamelModel):
    id: int
    order_number: str
    status: str
    payment_method: str
    payment_status: str
    total_amount: int
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: str
    shipping_city: str
    created_at: Optional[datetime] = None


class OrderDetailOut(CamelModel):
    order: OrderPublicOut
    items: List[OrderItemOut]


class AdminOrderDetailOut(CamelModel):
    order: OrderAdminOut
    items: List[OrderItemOut]


class OrderListOut(CamelModel):
    orders: List[OrderListRowOut]
    count: int
    page: int
    limit: int


class StatusOut(CamelModel):
    id: int
    order_number: str
    status: str
    payment_status: str


class BulkDeleteOut(CamelModel):
    deleted: List[int]
    missing: List[int]


class SettingsOut(CamelModel):
    tax_rate: float
    shipping_fees: Dict[str, int]
    whatsapp_number: str
    store_name: str
    store_email: str
    delivery_notes: str
    pickup_notes: str


class WhatsAppLinkOut(CamelModel):
    order_number: str
    whatsapp_url: str
