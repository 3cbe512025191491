# bakery_orders/whatsapp.py
"""WhatsApp handoff: the prefilled chat that confirms payment with the store.

Pure formatting only. The caller opens the link; if that fails (popup
blocked and so on) the confirmation page offers the same link again.
"""
import re
from urllib.parse import quote

from . import config
from .settings import DEFAULT_STORE_NAME

WA_BASE_URL = "https://wa.me"
FIELD_CLIP_LENGTH = 200
CLOSING_LINE = "Mohon dibantu info pembayaran & jadwal pengiriman/pickup. Terima kasih!"


def format_rupiah(n) -> str:
    """
    Format integer to Indonesian-style with '.' as thousands separator.
    Example: 1234567 -> "1.234.567"
    """
    return f"{n:,.0f}".replace(",", ".")


def item_label(name, variant_name=None):
    return f"{name} - {variant_name}" if variant_name else name


def _field(item, key, default=None):
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


def format_items_text(items) -> str:
    """One ``- Name - Variant xQty = RpTotal`` line per item."""
    lines = []
    for item in items:
        price = _field(item, "unit_price")
        if price is None:
            price = _field(item, "price", 0)
        qty = int(_field(item, "quantity", 0))
        label = item_label(_field(item, "product_name", ""), _field(item, "variant_name"))
        lines.append(f"- {label} x{qty} = Rp{format_rupiah(int(price) * qty)}")
    return "\n".join(lines)


def build_order_message(
    order_number,
    customer_name,
    customer_phone,
    address,
    city,
    total_amount,
    items_text,
    store_name=None,
    delivery_notes=None,
    pickup_notes=None,
    max_length=None,
) -> str:
    store = (store_name or "").strip() or DEFAULT_STORE_NAME
    max_length = max_length or config.WHATSAPP_MAX_MESSAGE_LENGTH

    def render(details, clip=None):
        def text(value):
            value = str(value or "").strip()
            if clip and len(value) > clip:
                return value[:clip - 3] + "..."
            return value

        lines = [
            f"Halo {text(store)}, saya sudah buat pesanan:",
            "",
            f"No. Pesanan: #{order_number}",
            f"Nama: {text(customer_name)}",
            f"No WA: {text(customer_phone)}",
            f"Alamat: {text(address)}, {text(city)}",
            "",
            "Rincian:",
            details,
            "",
            f"Total: Rp{format_rupiah(total_amount)}",
            "",
        ]
        if delivery_notes and delivery_notes.strip():
            lines.append(f"Catatan Delivery: {text(delivery_notes)}")
        if pickup_notes and pickup_notes.strip():
            lines.append(f"Catatan Pickup: {text(pickup_notes)}")
        lines.append(CLOSING_LINE)
        return "\n".join(lines)

    message = render(items_text)
    if len(message) <= max_length:
        return message
    # long carts: point at the tracking page instead of listing every item
    count = len([ln for ln in items_text.splitlines() if ln.strip()])
    summary = f"({count} item, detail lengkap di halaman pesanan #{order_number})"
    message = render(summary)
    if len(message) <= max_length:
        return message
    # long customer or store text: shorten each free-text field
    message = render(summary, clip=FIELD_CLIP_LENGTH)
    if len(message) <= max_length:
        return message
    # order number and total come first; drop whatever still overflows
    return message[:max_length]


def phone_digits(number) -> str:
    return re.sub(r"\D", "", number or "")


def build_whatsapp_link(phone_number, message) -> str:
    # safe="" so newlines, '&', '#' and '?' in user text are all escaped
    return f"{WA_BASE_URL}/{phone_digits(phone_number)}?text={quote(message, safe='')}"


def order_whatsapp_link(order, items, settings) -> str:
    """Link for a persisted order, used after creation and for retries."""
    message = build_order_message(
        order_number=order["order_number"],
        customer_name=order["customer_name"],
        customer_phone=order["customer_phone"],
        address=order["shipping_address"],
        city=order["shipping_city"],
        total_amount=order["total_amount"],
        items_text=format_items_text(items),
        store_name=settings.store_name,
        delivery_notes=settings.delivery_notes,
        pickup_notes=settings.pickup_notes,
    )
    return build_whatsapp_link(settings.whatsapp_number, message)
