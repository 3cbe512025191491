# bakery_orders/db.py
from contextlib import contextmanager

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from . import config
from .errors import ConfigurationError, StorageTimeoutError

pool = ConnectionPool(
    conninfo=config.DATABASE_URL or "",
    min_size=config.POOL_MIN,
    max_size=config.POOL_MAX,
    timeout=config.POOL_TIMEOUT,
    kwargs={
        "autocommit": False,  # we manage transactions
        "options": f"-c statement_timeout={config.STATEMENT_TIMEOUT_MS}",
    },
    open=False,  # opened on app startup, once DATABASE_URL is known to be set
)


def open_pool():
    if not config.DATABASE_URL:
        raise ConfigurationError("DATABASE_URL is not set")
    pool.open()


def close_pool():
    pool.close()


@contextmanager
def get_conn():
    if not config.DATABASE_URL:
        raise ConfigurationError("DATABASE_URL is not set")
    try:
        with pool.connection() as conn:
            yield conn
    except PoolTimeout as e:
        raise StorageTimeoutError("acquire connection") from e


def fetch_all(conn, sql, params=None):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, params or ())
        return cur.fetchall()


def fetch_one(conn, sql, params=None):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, params or ())
        return cur.fetchone()


def execute(conn, sql, params=None):
    with conn.cursor() as cur:
        cur.execute(sql, params or ())
        return cur.rowcount


def execute_many(conn, sql, params_seq):
    with conn.cursor() as cur:
        cur.executemany(sql, params_seq)
