# bakery_orders/pricing.py
"""Checkout pricing shared by the display quote and order creation.

Everything here is pure: amounts are integer rupiah, the tax amount is
rounded half-up to a whole rupiah with Decimal so repeated runs agree.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Mapping, Optional


class ShippingRegion(str, Enum):
    JAWA_TENGAH = "jawa_tengah"
    DI_YOGYAKARTA = "di_yogyakarta"
    JAWA_BARAT = "jawa_barat"
    DKI_JAKARTA = "dki_jakarta"
    BANTEN = "banten"
    JAWA_TIMUR = "jawa_timur"
    OTHER = "other"  # no flat fee, negotiated over WhatsApp


# column limits in schema.sql: quantity is INTEGER, money is BIGINT
MAX_QUANTITY = 2**31 - 1
MAX_UNIT_PRICE = 10**9
MAX_SUBTOTAL = 10**15  # leaves room for tax and shipping below the BIGINT ceiling

DEFAULT_SHIPPING_FEES = {
    ShippingRegion.JAWA_TENGAH.value: 10_000,
    ShippingRegion.DI_YOGYAKARTA.value: 10_000,
    ShippingRegion.JAWA_BARAT.value: 13_000,
    ShippingRegion.DKI_JAKARTA.value: 13_000,
    ShippingRegion.BANTEN.value: 13_000,
    ShippingRegion.JAWA_TIMUR.value: 13_000,
}


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    tax_rate: float
    tax_amount: int
    shipping_fee: Optional[int]  # None means "confirm via WhatsApp", not zero
    discount_amount: int
    total: int

    @property
    def shipping_pending(self) -> bool:
        return self.shipping_fee is None

    @property
    def shipping_cost(self) -> int:
        return self.shipping_fee or 0


def _price_and_qty(item):
    if isinstance(item, Mapping):
        return item["price"], item["quantity"]
    return item.price, item.quantity


def compute_subtotal(items: Iterable) -> int:
    """Sum of price x quantity. Accepts mappings or objects with price/quantity."""
    subtotal = 0
    for item in items:
        price, qty = _price_and_qty(item)
        subtotal += int(price) * int(qty)
    return subtotal


def compute_tax(subtotal: int, tax_rate: float) -> int:
    amount = Decimal(subtotal) * Decimal(str(tax_rate))
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def shipping_fee(region: Optional[str], fees: Optional[Mapping[str, int]] = None) -> Optional[int]:
    """Flat fee for a region.

    Unselected or unknown regions cost 0 so a gap in the fee table never
    blocks checkout. ``other`` returns None.
    """
    region = (region or "").strip().lower()
    if not region:
        return 0
    if region == ShippingRegion.OTHER.value:
        return None
    table = dict(DEFAULT_SHIPPING_FEES)
    if fees:
        table.update(fees)
    fee = table.get(region)
    if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
        return 0
    return fee


def compute_totals(items: Iterable, region: Optional[str], settings) -> PriceBreakdown:
    """Price a list of line items against the current store settings."""
    subtotal = compute_subtotal(items)
    tax_amount = compute_tax(subtotal, settings.tax_rate)
    fee = shipping_fee(region, settings.shipping_fees)
    discount = 0
    total = subtotal + tax_amount + (fee or 0) - discount
    return PriceBreakdown(
        subtotal=subtotal,
        tax_rate=settings.tax_rate,
        tax_amount=tax_amount,
        shipping_fee=fee,
        discount_amount=discount,
        total=total,
    )
