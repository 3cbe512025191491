# bakery_orders/order_number.py
import re
import secrets
import string
from datetime import datetime

ORDER_NUMBER_PREFIX = "ORD"
SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 4

ORDER_NUMBER_RE = re.compile(r"^ORD-\d{8}-[A-Z0-9]{4}$")


def generate_order_number(now=None, choice=secrets.choice):
    """Return ``ORD-YYYYMMDD-XXXX`` for the server's local calendar date.

    Uniqueness is not guaranteed here; the orders table enforces it and
    order creation asks for a new number on conflict.
    """
    now = now or datetime.now()
    suffix = "".join(choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{ORDER_NUMBER_PREFIX}-{now:%Y%m%d}-{suffix}"


def is_order_number(value) -> bool:
    return isinstance(value, str) and bool(ORDER_NUMBER_RE.match(value))
