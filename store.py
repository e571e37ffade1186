# store.py
from __future__ import annotations
import logging, os, sqlite3, threading
from pathlib import Path
from typing import Any, Mapping, Sequence

logger = logging.getLogger(__name__)

DB_PATH = Path(os.getenv("DSB_DB_PATH", "./search/storefront.sqlite"))


# -----------------------------
# Connection
# -----------------------------
def _ulower(value) -> str:
    return str(value).lower() if value is not None else ""


def connect(db_path: Path | str | None = None) -> sqlite3.Connection:
    path = Path(db_path) if db_path is not None else DB_PATH
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    # check_same_thread=False: FastAPI öffnet in der Dependency, nutzt im Threadpool
    con = sqlite3.connect(str(path), check_same_thread=False)
    con.row_factory = sqlite3.Row
    # SQLite-LIKE ignoriert Groß/klein nur für ASCII; ulower() deckt Umlaute ab
    con.create_function("ulower", 1, _ulower, deterministic=True)
    return con


def fetch_rows(
    con: sqlite3.Connection, sql: str, params: Mapping[str, Any] | Sequence[Any] = ()
) -> list[sqlite3.Row]:
    return con.execute(sql, params).fetchall()


# -----------------------------
# Schema
# -----------------------------
SEARCH_LOG_DDL = [
    """
    CREATE TABLE IF NOT EXISTS search_log(
      query         TEXT PRIMARY KEY,
      query_display TEXT NOT NULL,
      hits          INTEGER NOT NULL DEFAULT 1,
      results       INTEGER NOT NULL DEFAULT 0,
      last_search   TEXT NOT NULL,
      status        TEXT NOT NULL DEFAULT 'ok'
    )""",
    "CREATE INDEX IF NOT EXISTS idx_search_log_hits ON search_log(hits)",
    "CREATE INDEX IF NOT EXISTS idx_search_log_last ON search_log(last_search)",
]

CATALOG_DDL = [
    """
    CREATE TABLE IF NOT EXISTS products(
      id              INTEGER PRIMARY KEY,
      name            TEXT NOT NULL,
      article_no      TEXT,
      search_keywords TEXT
    )""",
    """
    CREATE TABLE IF NOT EXISTS categories(
      id   INTEGER PRIMARY KEY,
      name TEXT NOT NULL
    )""",
    """
    CREATE TABLE IF NOT EXISTS manufacturers(
      id   INTEGER PRIMARY KEY,
      name TEXT NOT NULL
    )""",
    """
    CREATE TABLE IF NOT EXISTS seo(
      slug        TEXT PRIMARY KEY,
      key_type    TEXT NOT NULL,
      key_id      INTEGER NOT NULL,
      language_id INTEGER NOT NULL DEFAULT 1
    )""",
    "CREATE INDEX IF NOT EXISTS idx_seo_key ON seo(key_type, key_id, language_id)",
    """
    CREATE TABLE IF NOT EXISTS product_visibility(
      product_id        INTEGER NOT NULL,
      customer_group_id INTEGER NOT NULL,
      PRIMARY KEY (product_id, customer_group_id)
    )""",
    """
    CREATE TABLE IF NOT EXISTS settings(
      name  TEXT PRIMARY KEY,
      value TEXT NOT NULL
    )""",
]


def init_db(con: sqlite3.Connection) -> None:
    for ddl in CATALOG_DDL + SEARCH_LOG_DDL:
        con.execute(ddl)
    con.commit()


def _db_key(con: sqlite3.Connection) -> str:
    row = con.execute("PRAGMA database_list").fetchone()
    return row[2] if row else ""


class StoreState:
    """
    Process-wide init flags. Filled lazily on first use, one entry per database
    file; reset() forgets everything (tests, or after swapping the database).
    """

    def __init__(self):
        self._log_tables: set[str] = set()
        self._lock = threading.Lock()

    def ensure_search_log_table(self, con: sqlite3.Connection) -> bool:
        try:
            key = _db_key(con)
            with self._lock:
                if key and key in self._log_tables:
                    return True
            for ddl in SEARCH_LOG_DDL:
                con.execute(ddl)
            con.commit()
            # In-Memory-DBs haben keinen Pfad -> jedes Mal prüfen
            if key:
                with self._lock:
                    self._log_tables.add(key)
            return True
        except sqlite3.Error as e:
            logger.warning("ensure search_log failed: %s", e)
            return False

    def reset(self) -> None:
        with self._lock:
            self._log_tables.clear()


STATE = StoreState()


def reset_store_state() -> None:
    STATE.reset()


# -----------------------------
# Settings rows
# -----------------------------
def read_settings_rows(con: sqlite3.Connection) -> dict[str, str]:
    rows = con.execute("SELECT name, value FROM settings").fetchall()
    return {str(r["name"]): str(r["value"]) for r in rows if r["name"]}


def set_setting(con: sqlite3.Connection, name: str, value: str) -> None:
    con.execute(
        "INSERT INTO settings(name, value) VALUES(?, ?) "
        "ON CONFLICT(name) DO UPDATE SET value=excluded.value",
        (name, str(value)),
    )
    con.commit()


# -----------------------------
# Catalog import
# -----------------------------
_ENTITY_TABLES = {
    "products": "product",
    "categories": "category",
    "manufacturers": "manufacturer",
}


def _upsert_slug(con: sqlite3.Connection, kind: str, item: dict) -> None:
    # ohne führenden Slash, sonst greift der Präfix-Vergleich nicht
    slug = (item.get("slug") or "").strip().lstrip("/")
    if not slug:
        return
    con.execute(
        """
        INSERT INTO seo(slug, key_type, key_id, language_id) VALUES(?,?,?,?)
        ON CONFLICT(slug) DO UPDATE SET
          key_type=excluded.key_type, key_id=excluded.key_id,
          language_id=excluded.language_id
    """,
        (slug, kind, int(item["id"]), int(item.get("language_id", 1))),
    )


def upsert_catalog(con: sqlite3.Connection, data: dict) -> dict[str, int]:
    """Upsert products/categories/manufacturers (+ slugs, visibility). Returns counts per section."""
    counts = {}
    for section, kind in _ENTITY_TABLES.items():
        items = data.get(section) or []
        for item in items:
            if section == "products":
                con.execute(
                    """
                    INSERT INTO products(id, name, article_no, search_keywords)
                    VALUES(?,?,?,?)
                    ON CONFLICT(id) DO UPDATE SET
                      name=excluded.name, article_no=excluded.article_no,
                      search_keywords=excluded.search_keywords
                """,
                    (
                        int(item["id"]),
                        item["name"],
                        item.get("article_no"),
                        item.get("search_keywords"),
                    ),
                )
                con.execute(
                    "DELETE FROM product_visibility WHERE product_id=?", (int(item["id"]),)
                )
                for group in item.get("hidden_for_groups") or []:
                    con.execute(
                        "INSERT OR IGNORE INTO product_visibility(product_id, customer_group_id) VALUES(?,?)",
                        (int(item["id"]), int(group)),
                    )
            else:
                con.execute(
                    f"INSERT INTO {section}(id, name) VALUES(?,?) "
                    "ON CONFLICT(id) DO UPDATE SET name=excluded.name",
                    (int(item["id"]), item["name"]),
                )
            _upsert_slug(con, kind, item)
        counts[section] = len(items)
    con.commit()
    return counts
