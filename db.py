import psycopg2
from psycopg2.pool import SimpleConnectionPool
from contextlib import contextmanager
from settings import settings
import psycopg2.extras
_pool: SimpleConnectionPool | None = None


def init_pool(dsn: str | None = None):
    """
    Initialize the PostgreSQL connection pool.
    Called lazily by the postgres document store.
    """
    global _pool
    if _pool is None:
        url = dsn or settings.DATABASE_URL
        if not url:
            raise RuntimeError("DATABASE_URL is not set.")
        _pool = SimpleConnectionPool(
            minconn=1,
            maxconn=10,
            dsn=url,
            connect_timeout=5,
        )


def close_pool():
    """
    Gracefully close all pooled connections.
    """
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn():
    """
    Provides a transactional DB connection.
    Auto-commits on success, rolls back on error.
    """
    if _pool is None:
        init_pool()

    conn = _pool.getconn()

    try:
        # Safety: never allow long-running queries
        with conn.cursor() as cur:
            cur.execute("SET statement_timeout = '5000ms';")
            cur.execute("SET idle_in_transaction_session_timeout = '5000ms';")
            cur.execute("SET application_name = 'klinikpay_api';")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        _pool.putconn(conn)


def ping() -> bool:
    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute("SELECT 1 AS ok;")
            row = cur.fetchone()
    return bool(row and row["ok"] == 1)
