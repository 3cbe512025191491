# bakery_orders/cart.py
"""Client-side cart: a staging area the server never trusts.

Lines merge on (product_id, variant_id). ``CartStorage`` keeps the cart
in a JSON file between sessions, last write wins.
"""
import logging
import secrets
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .pricing import MAX_QUANTITY, MAX_UNIT_PRICE

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1


def new_line_id() -> str:
    return secrets.token_hex(5)


def clamp_quantity(qty) -> int:
    """Quantity bounds applied by every caller of ``Cart.update_quantity``."""
    return min(MAX_QUANTITY, max(MIN_QUANTITY, int(qty)))


class CartLine(BaseModel):
    id: str = ""  # local key only
    product_id: str = Field(min_length=1)
    variant_id: Optional[str] = None
    product_name: str
    variant_name: Optional[str] = None
    unit_price: int = Field(ge=0, le=MAX_UNIT_PRICE)  # snapshot taken when added
    quantity: int = Field(default=1, ge=MIN_QUANTITY, le=MAX_QUANTITY)
    image: Optional[str] = None

    @property
    def key(self):
        return (self.product_id, self.variant_id)

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class Cart(BaseModel):
    items: List[CartLine] = []

    def find(self, line_id) -> Optional[CartLine]:
        return next((it for it in self.items if it.id == line_id), None)

    def add_item(self, line: CartLine) -> CartLine:
        for it in self.items:
            if it.key == line.key:
                it.quantity = min(MAX_QUANTITY, it.quantity + line.quantity)
                return it
        added = line.model_copy(update={"id": line.id or new_line_id()})
        self.items.append(added)
        return added

    def remove_item(self, line_id) -> None:
        self.items = [it for it in self.items if it.id != line_id]

    def update_quantity(self, line_id, qty: int) -> None:
        if qty < MIN_QUANTITY or qty > MAX_QUANTITY:
            raise ValidationError(f"quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}, got {qty}")
        line = self.find(line_id)
        if line:
            line.quantity = qty

    def clear(self) -> None:
        self.items = []

    def total_items(self) -> int:
        return sum(it.quantity for it in self.items)

    def total_price(self) -> int:
        return sum(it.line_total for it in self.items)

    def checkout_items(self) -> List[dict]:
        """Item payload for ``POST /orders``."""
        return [
            {
                "productId": it.product_id,
                "variantId": it.variant_id,
                "productName": it.product_name,
                "variantName": it.variant_name,
                "price": it.unit_price,
                "quantity": it.quantity,
            }
            for it in self.items
        ]

    @classmethod
    def buy_now(cls, line: CartLine) -> "Cart":
        """One-off cart for "buy now"; it bypasses the saved cart."""
        cart = cls()
        cart.add_item(line)
        return cart


class CartStorage:
    """Keeps a cart in a JSON file on the customer's device."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Cart:
        if not self.path.exists():
            return Cart()
        try:
            return Cart.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (PydanticValidationError, UnicodeDecodeError, OSError) as e:
            logger.warning("discarding unreadable cart at %s: %s", self.path, e)
            return Cart()

    def save(self, cart: Cart) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(cart.model_dump_json(), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> None:
        self.save(Cart())

    def finish_checkout(self, direct=False) -> None:
        """Call after the order was accepted. A "buy now" checkout keeps the saved cart."""
        if not direct:
            self.clear()
