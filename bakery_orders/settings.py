# bakery_orders/settings.py
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, Mapping, Optional, Protocol

from . import config
from .errors import SettingsUnavailableError, ValidationError
from .pricing import DEFAULT_SHIPPING_FEES

logger = logging.getLogger(__name__)

DEFAULT_WHATSAPP_NUMBER = "628996853721"
DEFAULT_STORE_NAME = "Bakery Umi"

SHIPPING_FEE_PREFIX = "shipping_fee_"
TEXT_KEYS = ("whatsapp_number", "store_name", "store_email", "delivery_notes", "pickup_notes")
SETTING_KEYS = ("tax_rate",) + TEXT_KEYS + tuple(SHIPPING_FEE_PREFIX + r for r in DEFAULT_SHIPPING_FEES)


@dataclass
class StoreSettings:
    tax_rate: float = config.DEFAULT_TAX_RATE
    shipping_fees: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SHIPPING_FEES))
    whatsapp_number: str = DEFAULT_WHATSAPP_NUMBER
    store_name: str = ""
    store_email: str = ""
    delivery_notes: str = ""
    pickup_notes: str = ""

    def to_dict(self):
        return asdict(self)


class SettingsSource(Protocol):
    def load(self) -> StoreSettings: ...


def _parse_tax_rate(raw) -> Optional[float]:
    try:
        rate = float(raw)
    except (TypeError, ValueError):
        return None
    if rate != rate or rate < 0 or rate > 1:  # NaN or out of range
        return None
    return rate


def _parse_fee(raw) -> Optional[int]:
    try:
        fee = float(raw)
    except (TypeError, ValueError):
        return None
    if fee != fee or fee < 0 or fee != int(fee):
        return None
    return int(fee)


def parse_settings(rows: Mapping[str, Optional[str]]) -> StoreSettings:
    """Build StoreSettings from raw key/value rows.

    Each field falls back to its default independently, so one malformed
    row never hides the others.
    """
    settings = StoreSettings()

    rate = _parse_tax_rate(rows.get("tax_rate"))
    if rate is not None:
        settings.tax_rate = rate
    elif rows.get("tax_rate") not in (None, ""):
        logger.warning("ignoring malformed tax_rate %r, using %s", rows.get("tax_rate"), settings.tax_rate)

    for region in DEFAULT_SHIPPING_FEES:
        fee = _parse_fee(rows.get(SHIPPING_FEE_PREFIX + region))
        if fee is not None:
            settings.shipping_fees[region] = fee

    number = str(rows.get("whatsapp_number") or "").strip()
    if number:
        settings.whatsapp_number = number
    for key in ("store_name", "store_email", "delivery_notes", "pickup_notes"):
        setattr(settings, key, str(rows.get(key) or "").strip())
    return settings


def load_settings(source: SettingsSource) -> StoreSettings:
    """Read settings, falling back to defaults when the source is down."""
    try:
        return source.load()
    except SettingsUnavailableError as e:
        logger.warning("store settings unavailable, using defaults: %s", e)
        return StoreSettings()


def validate_setting_updates(values: Mapping[str, object]) -> Dict[str, str]:
    """Check an admin settings patch and return the rows to upsert."""
    errors = []
    rows = {}
    for key, value in values.items():
        key = str(key).strip()
        if key not in SETTING_KEYS:
            errors.append(f"settings.{key}: unknown setting")
            continue
        text = "" if value is None else str(value).strip()
        if key == "tax_rate" and _parse_tax_rate(text) is None:
            errors.append("settings.tax_rate: must be a number between 0 and 1")
            continue
        if key.startswith(SHIPPING_FEE_PREFIX) and _parse_fee(text) is None:
            errors.append(f"settings.{key}: must be a non-negative whole number")
            continue
        rows[key] = text
    if errors:
        raise ValidationError(errors)
    if not rows:
        raise ValidationError("No settings to update.")
    return rows
