# bakery_orders/store.py
"""PostgreSQL-backed order store and settings source.

Both wrap one pooled connection. Nothing here commits on its own except
``PgSettingsSource.upsert``; the order services decide where a
transaction ends.
"""
from contextlib import contextmanager

import psycopg
from psycopg import errors as pg_errors

from .db import execute, execute_many, fetch_all, fetch_one
from .errors import (
    OrderNumberConflictError,
    PersistenceError,
    SettingsUnavailableError,
    StorageTimeoutError,
)
from .settings import SETTING_KEYS, parse_settings

ORDER_COLUMNS = """
    id, order_number, status, payment_method, payment_status,
    subtotal, tax_amount, shipping_cost, shipping_pending, discount_amount, total_amount,
    customer_name, customer_email, customer_phone,
    shipping_address, shipping_city, shipping_postal_code, shipping_province,
    customer_notes, created_at
"""

ITEM_COLUMNS = """
    id, order_id, product_id, variant_id, product_name, variant_name,
    unit_price, quantity, line_subtotal, created_at
"""

LIST_COLUMNS = """
    id, order_number, status, payment_method, payment_status, total_amount,
    customer_name, customer_email, customer_phone, shipping_city, created_at
"""


@contextmanager
def storage_errors(operation):
    try:
        yield
    except pg_errors.QueryCanceled as e:
        # statement_timeout fired
        raise StorageTimeoutError(operation) from e
    except psycopg.Error as e:
        raise PersistenceError(operation, e) from e


class PgOrderStore:
    supports_transactions = True

    def __init__(self, conn):
        self.conn = conn

    def commit(self):
        with storage_errors("commit"):
            self.conn.commit()

    def rollback(self):
        self.conn.rollback()

    # writes

    def insert_order(self, header):
        try:
            with storage_errors("insert order"):
                return fetch_one(self.conn, """
                    INSERT INTO orders(
                        order_number, status, payment_method, payment_status,
                        subtotal, tax_amount, shipping_cost, shipping_pending, discount_amount, total_amount,
                        customer_name, customer_email, customer_phone,
                        shipping_address, shipping_city, shipping_postal_code, shipping_province,
                        customer_notes)
                    VALUES (
                        %(order_number)s, %(status)s, %(payment_method)s, %(payment_status)s,
                        %(subtotal)s, %(tax_amount)s, %(shipping_cost)s, %(shipping_pending)s,
                        %(discount_amount)s, %(total_amount)s,
                        %(customer_name)s, %(customer_email)s, %(customer_phone)s,
                        %(shipping_address)s, %(shipping_city)s, %(shipping_postal_code)s, %(shipping_province)s,
                        %(customer_notes)s)
                    RETURNING """ + ORDER_COLUMNS, header)
        except PersistenceError as e:
            if isinstance(e.cause, pg_errors.UniqueViolation):
                raise OrderNumberConflictError(header["order_number"]) from e
            raise

    def insert_items(self, order_id, items):
        rows = [dict(item, order_id=order_id) for item in items]
        with storage_errors("insert order items"):
            execute_many(self.conn, """
                INSERT INTO order_items(
                    order_id, product_id, variant_id, product_name, variant_name,
                    unit_price, quantity, line_subtotal)
                VALUES (
                    %(order_id)s, %(product_id)s, %(variant_id)s, %(product_name)s, %(variant_name)s,
                    %(unit_price)s, %(quantity)s, %(line_subtotal)s)
            """, rows)

    def delete_order(self, order_id):
        with storage_errors("delete order"):
            # items first (FK)
            execute(self.conn, "DELETE FROM order_items WHERE order_id = %s", (order_id,))
            return execute(self.conn, "DELETE FROM orders WHERE id = %s", (order_id,)) > 0

    def update_order_status(self, order_id, fields):
        sets = ", ".join(f"{col} = %({col})s" for col in fields)
        with storage_errors("update order status"):
            return fetch_one(self.conn, f"""
                UPDATE orders SET {sets}, updated_at = NOW()
                WHERE id = %(id)s
                RETURNING id, order_number, status, payment_status
            """, dict(fields, id=order_id))

    # reads

    def get_order_by_number(self, order_number):
        with storage_errors("load order"):
            return fetch_one(self.conn, "SELECT " + ORDER_COLUMNS + " FROM orders WHERE order_number = %s",
                             (order_number,))

    def get_order_by_id(self, order_id):
        with storage_errors("load order"):
            return fetch_one(self.conn, "SELECT " + ORDER_COLUMNS + " FROM orders WHERE id = %s", (order_id,))

    def get_items(self, order_id):
        with storage_errors("load order items"):
            return fetch_all(self.conn, "SELECT " + ITEM_COLUMNS + """
                FROM order_items WHERE order_id = %s
                ORDER BY created_at ASC, id ASC
            """, (order_id,))

    def list_orders(self, limit, offset):
        with storage_errors("list orders"):
            return fetch_all(self.conn, "SELECT " + LIST_COLUMNS + """
                FROM orders ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s
            """, (limit, offset))

    def count_orders(self):
        with storage_errors("count orders"):
            row = fetch_one(self.conn, "SELECT COUNT(*)::int AS n FROM orders")
            return row["n"]


class PgSettingsSource:
    def __init__(self, conn):
        self.conn = conn

    def rows(self):
        rows = fetch_all(self.conn, "SELECT key, value FROM settings WHERE key = ANY(%s)", (list(SETTING_KEYS),))
        return {r["key"]: r["value"] for r in rows}

    def load(self):
        try:
            rows = self.rows()
        except psycopg.Error as e:
            # leave the connection usable for the order write that follows
            self.conn.rollback()
            raise SettingsUnavailableError(e) from e
        return parse_settings(rows)

    def upsert(self, values):
        with storage_errors("update settings"):
            try:
                execute_many(self.conn, """
                    INSERT INTO settings(key, value) VALUES (%(key)s, %(value)s)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                """, [{"key": k, "value": v} for k, v in values.items()])
                self.conn.commit()
            except psycopg.Error:
                self.conn.rollback()
                raise
