# bakery_orders/orders.py
"""Order creation, lookup, status update and deletion.

Services take an order store (``store.PgOrderStore`` in production) and
never read ambient state; settings arrive through a ``SettingsSource``.
"""
import logging

from . import config
from .errors import (
    BakeryOrdersError,
    OrderNotFoundError,
    OrderNumberConflictError,
    PersistenceError,
    ValidationError,
)
from .models import ORDER_STATUSES, PAYMENT_STATUSES, STATUS_LABELS
from .order_number import generate_order_number, is_order_number
from .pricing import compute_totals
from .settings import load_settings
from .whatsapp import order_whatsapp_link

logger = logging.getLogger(__name__)


def build_order_header(order_number, body, prices):
    shipping = body.shipping
    return {
        "order_number": order_number,
        "status": "pending",
        "payment_method": "online" if body.payment_method == "online" else "whatsapp",
        "payment_status": "pending",
        "subtotal": prices.subtotal,
        "tax_amount": prices.tax_amount,
        "shipping_cost": prices.shipping_cost,
        "shipping_pending": prices.shipping_pending,
        "discount_amount": prices.discount_amount,
        "total_amount": prices.total,
        "customer_name": shipping.full_name,
        "customer_email": str(shipping.email) if shipping.email else None,
        "customer_phone": shipping.phone,
        "shipping_address": shipping.address,
        "shipping_city": shipping.city,
        "shipping_postal_code": shipping.postal_code,
        "shipping_province": shipping.province,
        "customer_notes": shipping.notes,
    }


def build_order_items(body):
    return [
        {
            "product_id": item.product_id,
            "variant_id": item.variant_id,
            "product_name": item.product_name,
            "variant_name": item.variant_name,
            "unit_price": item.price,
            "quantity": item.quantity,
            "line_subtotal": item.price * item.quantity,
        }
        for item in body.items
    ]


def _discard(store, order_id):
    """Undo a half-written order."""
    store.rollback()
    if store.supports_transactions:
        return
    # no transactions: remove the header we already wrote
    try:
        store.delete_order(order_id)
        store.commit()
    except BakeryOrdersError:
        logger.exception("compensating delete failed for order id %s", order_id)
        raise


def create_order(store, settings_source, body, now=None, max_attempts=None):
    """Price and persist an order; returns the created order and its items.

    ``body`` is a validated ``models.OrderIn``. Client totals are never
    read: everything is recomputed from the submitted prices and quantities.
    Either the header and all items are committed, or nothing is.
    """
    max_attempts = max_attempts or config.ORDER_NUMBER_MAX_ATTEMPTS
    settings = load_settings(settings_source)
    prices = compute_totals(body.items, body.shipping.province, settings)
    items = build_order_items(body)

    for attempt in range(1, max_attempts + 1):
        order_number = generate_order_number(now)
        try:
            order = store.insert_order(build_order_header(order_number, body, prices))
        except OrderNumberConflictError:
            logger.warning("order number %s taken (attempt %d/%d)", order_number, attempt, max_attempts)
            store.rollback()
            continue
        except BakeryOrdersError:
            store.rollback()
            raise

        try:
            store.insert_items(order["id"], items)
            store.commit()
        except BakeryOrdersError as e:
            logger.error("order %s: item write failed, discarding header: %s", order_number, e)
            _discard(store, order["id"])
            raise

        logger.info("created order %s total=%s items=%d", order_number, order["total_amount"], len(items))
        return {
            "order": order,
            "items": items,
            "prices": prices,
            "whatsapp_url": order_whatsapp_link(order, items, settings),
        }

    raise PersistenceError(f"allocate order number ({max_attempts} attempts)")


def get_order_by_number(store, order_number):
    order_number = (order_number or "").strip().upper()
    if not order_number:
        raise ValidationError("Missing orderNumber.")
    if not is_order_number(order_number):
        raise OrderNotFoundError(order_number)
    order = store.get_order_by_number(order_number)
    if not order:
        raise OrderNotFoundError(order_number)
    order = dict(order, status_label=STATUS_LABELS.get(order["status"], order["status"]))
    return {"order": order, "items": store.get_items(order["id"])}


def get_order_by_id(store, order_id):
    order = store.get_order_by_id(order_id)
    if not order:
        raise OrderNotFoundError(order_id, by="id")
    order = dict(order, status_label=STATUS_LABELS.get(order["status"], order["status"]))
    return {"order": order, "items": store.get_items(order["id"])}


def whatsapp_link_for(store, settings_source, order_number):
    """Rebuild the handoff link, for when opening it the first time failed."""
    found = get_order_by_number(store, order_number)
    settings = load_settings(settings_source)
    return order_whatsapp_link(found["order"], found["items"], settings)


def list_orders(store, page=1, limit=20):
    offset = (page - 1) * limit
    return {
        "orders": store.list_orders(limit, offset),
        "count": store.count_orders(),
        "page": page,
        "limit": limit,
    }


def validate_status_patch(patch):
    """Return the columns to update; blank values count as absent."""
    fields = {}
    errors = []
    for attr, column, allowed in (
        ("status", "status", ORDER_STATUSES),
        ("payment_status", "payment_status", PAYMENT_STATUSES),
    ):
        value = getattr(patch, attr)
        if value is None or not value.strip():
            continue
        value = value.strip()
        if value not in allowed:
            errors.append(f"{attr}: must be one of {', '.join(allowed)}")
            continue
        fields[column] = value
    if errors:
        raise ValidationError(errors)
    if not fields:
        raise ValidationError("No fields to update.")
    return fields


def update_order_status(store, order_id, patch):
    """Set status and/or payment status. Any transition is allowed."""
    fields = validate_status_patch(patch)
    try:
        row = store.update_order_status(order_id, fields)
    except BakeryOrdersError:
        store.rollback()
        raise
    if not row:
        store.rollback()
        raise OrderNotFoundError(order_id, by="id")
    store.commit()
    logger.info("order %s updated: %s", row["order_number"], fields)
    return row


def delete_orders(store, ids):
    """Delete orders with their items, one transaction per id."""
    ids = [i for i in dict.fromkeys(ids or []) if i is not None]
    if not ids:
        raise ValidationError("Missing order id(s).")
    deleted, missing = [], []
    for order_id in ids:
        try:
            found = store.delete_order(order_id)
            store.commit()
        except BakeryOrdersError:
            store.rollback()
            raise
        (deleted if found else missing).append(order_id)
    if deleted:
        logger.info("deleted orders %s", deleted)
    return {"deleted": deleted, "missing": missing}
