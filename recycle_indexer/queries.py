import sqlite3
from typing import Any, Dict, List, Optional

from recycle_indexer.helpers import ts_to_datetime


def row_to_dict(cur: sqlite3.Cursor, row) -> Dict[str, Any]:
    out = {d[0]: v for d, v in zip(cur.description, row)}
    if out.get("ts") is not None:
        out["timestamp"] = ts_to_datetime(out.pop("ts"))
    return out

def _one(conn, sql, params) -> Optional[Dict[str, Any]]:
    cur = conn.execute(sql, params)
    row = cur.fetchone()
    return row_to_dict(cur, row) if row else None

def _all(conn, sql, params) -> List[Dict[str, Any]]:
    cur = conn.execute(sql, params)
    return [row_to_dict(cur, r) for r in cur.fetchall()]


def get_manufacturer(conn, id_: str):
    return _one(conn, "SELECT id, name, location, contact, ts FROM manufacturers WHERE id=?", (str(id_),))

def get_product(conn, id_):
    return _one(conn, "SELECT id, name, manufacturer_id, ts FROM products WHERE id=?", (str(id_),))

def get_product_item(conn, id_):
    return _one(conn, "SELECT id, product_id, status, ts FROM product_items WHERE id=?", (str(id_),))

def product_items(conn, product_id) -> List[Dict[str, Any]]:
    return _all(conn, """
        SELECT id, product_id, status, ts FROM product_items
        WHERE product_id=? ORDER BY id ASC
    """, (str(product_id),))

def item_history(conn, item_id) -> List[Dict[str, Any]]:
    """Status history of one item, oldest first."""
    return _all(conn, """
        SELECT id, product_item_id, status, ts FROM transactions
        WHERE product_item_id=? ORDER BY id ASC
    """, (str(item_id),))

def toxic_items(conn, product_id) -> List[Dict[str, Any]]:
    return _all(conn, """
        SELECT id, product_id, name, weight, ts FROM toxic_items
        WHERE product_id=? ORDER BY id ASC
    """, (str(product_id),))

def counts(conn) -> Dict[str, int]:
    return {
        t: conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]
        for t in ("manufacturers", "products", "product_items", "transactions", "toxic_items")
    }
