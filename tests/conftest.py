"""Pytest fixtures for bakery_orders tests."""

import itertools
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from bakery_orders.errors import (
    OrderNumberConflictError,
    PersistenceError,
    SettingsUnavailableError,
)
from bakery_orders.settings import parse_settings


class InMemoryOrderStore:
    """Order store double with the same interface as PgOrderStore.

    With ``supports_transactions`` the first write takes a snapshot that
    ``rollback`` restores; without it every write is immediately visible,
    like a store with no multi-statement transactions.
    """

    def __init__(self, supports_transactions=True):
        self.supports_transactions = supports_transactions
        self.orders = {}
        self.items = []
        self.fail_items = False
        self.conflicts_left = 0
        self.deleted_ids = []
        self.commits = 0
        self.rollbacks = 0
        self._order_ids = itertools.count(1)
        self._item_ids = itertools.count(1)
        self._snapshot = None

    def _begin(self):
        if self.supports_transactions and self._snapshot is None:
            self._snapshot = ({k: dict(v) for k, v in self.orders.items()}, list(self.items))

    def commit(self):
        self.commits += 1
        self._snapshot = None

    def rollback(self):
        self.rollbacks += 1
        if self._snapshot is not None:
            self.orders, self.items = self._snapshot
            self._snapshot = None

    def insert_order(self, header):
        self._begin()
        number = header["order_number"]
        if self.conflicts_left > 0:
            self.conflicts_left -= 1
            raise OrderNumberConflictError(number)
        if any(o["order_number"] == number for o in self.orders.values()):
            raise OrderNumberConflictError(number)
        row = dict(header, id=next(self._order_ids), created_at=datetime.now(timezone.utc))
        self.orders[row["id"]] = row
        return dict(row)

    def insert_items(self, order_id, items):
        self._begin()
        if self.fail_items:
            raise PersistenceError("insert order items", RuntimeError("connection reset"))
        for item in items:
            self.items.append(
                dict(item, id=next(self._item_ids), order_id=order_id, created_at=datetime.now(timezone.utc))
            )

    def delete_order(self, order_id):
        self._begin()
        self.deleted_ids.append(order_id)
        self.items = [i for i in self.items if i["order_id"] != order_id]
        return self.orders.pop(order_id, None) is not None

    def update_order_status(self, order_id, fields):
        self._begin()
        order = self.orders.get(order_id)
        if not order:
            return None
        order.update(fields)
        return {k: order[k] for k in ("id", "order_number", "status", "payment_status")}

    def get_order_by_number(self, order_number):
        return next((dict(o) for o in self.orders.values() if o["order_number"] == order_number), None)

    def get_order_by_id(self, order_id):
        order = self.orders.get(order_id)
        return dict(order) if order else None

    def get_items(self, order_id):
        return [dict(i) for i in self.items if i["order_id"] == order_id]

    def list_orders(self, limit, offset):
        rows = sorted(self.orders.values(), key=lambda o: o["id"], reverse=True)
        return [dict(o) for o in rows[offset:offset + limit]]

    def count_orders(self):
        return len(self.orders)


class DictSettingsSource:
    """Settings source backed by a dict of raw key/value rows."""

    def __init__(self, rows=None, fail=False):
        self.rows = dict(rows or {})
        self.fail = fail

    def load(self):
        if self.fail:
            raise SettingsUnavailableError(RuntimeError("settings table unreachable"))
        return parse_settings(self.rows)

    def upsert(self, values):
        self.rows.update(values)


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def settings_source():
    return DictSettingsSource({
        "tax_rate": "0.11",
        "whatsapp_number": "+62 899-6853-721",
        "store_name": "Bakery Umi",
        "delivery_notes": "Pengiriman H+1",
        "shipping_fee_dki_jakarta": "15000",
    })


@pytest.fixture
def client(store, settings_source):
    """Test client with storage swapped for in-memory doubles."""
    from bakery_orders.app import app, get_settings_source, get_store

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings_source] = lambda: settings_source
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_payload():
    return {
        "shipping": {
            "fullName": "Budi",
            "phone": "081234567890",
            "address": "Jl. A",
            "city": "Jakarta",
        },
        "paymentMethod": "whatsapp",
        "items": [
            {"productId": "p1", "productName": "Roti Sobek", "price": 50000, "quantity": 2},
        ],
    }
