# query_log.py
from __future__ import annotations
import logging, sqlite3
from datetime import datetime

from search_normalize import escape_like
from store import STATE

logger = logging.getLogger(__name__)

MAX_QUERY_LEN = 255
MAX_LIMIT = 50
STATUSES = ("ok", "empty", "short", "error")


def clamp_limit(raw, default: int) -> int:
    try:
        limit = int(raw) if raw is not None and str(raw).strip() != "" else default
    except (TypeError, ValueError):
        limit = default
    return max(1, min(MAX_LIMIT, limit))


def log_query(
    con: sqlite3.Connection,
    query: str,
    result_count: int = 0,
    status: str = "ok",
    now: datetime | None = None,
) -> None:
    """
    Counter upsert keyed by the lower-cased query. Best effort: never raises,
    a failed write must not turn a search into an error.
    """
    if not query:
        return
    try:
        STATE.ensure_search_log_table(con)
        ts = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        con.execute(
            """
            INSERT INTO search_log(query, query_display, hits, results, last_search, status)
            VALUES(:query, :display, 1, :results, :now, :status)
            ON CONFLICT(query) DO UPDATE SET
              hits = hits + 1,
              results = excluded.results,
              last_search = excluded.last_search,
              status = excluded.status,
              query_display = excluded.query_display
        """,
            {
                "query": query.lower()[:MAX_QUERY_LEN],
                "display": query[:MAX_QUERY_LEN],
                "results": max(0, int(result_count)),
                "now": ts,
                "status": status if status in STATUSES else "error",
            },
        )
        con.commit()
    except Exception as e:
        logger.error("log_query failed for %r: %s", query, e)


def get_popular_queries(con: sqlite3.Connection, limit: int = 8) -> list[dict]:
    limit = clamp_limit(limit, 8)
    try:
        STATE.ensure_search_log_table(con)
        rows = con.execute(
            """
            SELECT query_display AS query, hits, last_search AS lastSearch
            FROM search_log
            ORDER BY hits DESC, last_search DESC, query ASC
            LIMIT ?
        """,
            (limit,),
        ).fetchall()
    except sqlite3.Error as e:
        logger.error("get_popular_queries failed: %s", e)
        return []
    return [
        {"query": r["query"], "hits": int(r["hits"]), "lastSearch": r["lastSearch"]}
        for r in rows
    ]


def get_suggestions(con: sqlite3.Connection, prefix: str, limit: int = 5) -> list[dict]:
    prefix = (prefix or "").strip()
    if not prefix:
        return []
    limit = clamp_limit(limit, 5)
    try:
        STATE.ensure_search_log_table(con)
        rows = con.execute(
            """
            SELECT query_display AS query, hits
            FROM search_log
            WHERE query LIKE ? ESCAPE '\\'
            ORDER BY hits DESC, query ASC
            LIMIT ?
        """,
            (escape_like(prefix.lower()) + "%", limit),
        ).fetchall()
    except sqlite3.Error as e:
        logger.error("get_suggestions failed: %s", e)
        return []
    return [{"query": r["query"], "hits": int(r["hits"])} for r in rows]
