# storefront_search.py
from __future__ import annotations
import argparse, json, logging, sqlite3, time
from pathlib import Path
from typing import Optional

from query_builder import (
    CATEGORY_FIELDS,
    MANUFACTURER_FIELDS,
    build_product_conditions,
    build_token_conditions,
)
from query_log import log_query
from results import assemble_results
from schemas import KIND_ORDER, CustomerContext, SearchResult
from search_normalize import like_value, normalize_query, tokenize_query
from settings import SearchSettings, load_settings
from store import connect, fetch_rows

logger = logging.getLogger(__name__)

FALLBACK_LIMIT = 5

# Artikel, die für die Kundengruppe ausgeblendet sind
_VISIBLE = (
    "p.id NOT IN (SELECT product_id FROM product_visibility "
    "WHERE customer_group_id = :customer_group)"
)


class SearchError(RuntimeError):
    pass


def _product_rows(
    con: sqlite3.Connection,
    tokens: list[str],
    q: str,
    settings: SearchSettings,
    customer: CustomerContext,
) -> list[sqlite3.Row]:
    where, params = build_product_conditions(
        tokens,
        q,
        keywords=settings.brand_keywords,
        stop_words=settings.stop_words,
    )
    params.update(
        {
            "lang": customer.language_id,
            "customer_group": customer.customer_group_id,
            "limit": settings.limit_products,
        }
    )
    rows = fetch_rows(
        con,
        f"""
        SELECT DISTINCT p.id AS id, p.name AS label
        FROM products p
        LEFT JOIN seo s ON s.key_type = 'product' AND s.key_id = p.id
                       AND s.language_id = :lang
        WHERE ({where}) AND {_VISIBLE}
        ORDER BY p.name ASC, p.id ASC
        LIMIT :limit
    """,
        params,
    )
    if rows:
        return rows

    # nichts gefunden -> breite Suche über den Namen mit der ganzen Eingabe
    logger.info("no strict product match for %r, trying fallback", q)
    return fetch_rows(
        con,
        f"""
        SELECT DISTINCT p.id AS id, p.name AS label
        FROM products p
        WHERE ulower(p.name) LIKE :q ESCAPE '\\' AND {_VISIBLE}
        ORDER BY p.name ASC, p.id ASC
        LIMIT :limit
    """,
        {
            "q": like_value(q.lower(), "contains", escape=True),
            "customer_group": customer.customer_group_id,
            "limit": min(FALLBACK_LIMIT, settings.limit_products),
        },
    )


def _entity_rows(
    con: sqlite3.Connection,
    kind: str,
    tokens: list[str],
    limit: int,
    language_id: int,
) -> list[sqlite3.Row]:
    if kind == "category":
        table, alias, fields, prefix = "categories", "k", CATEGORY_FIELDS, "c"
    else:
        table, alias, fields, prefix = "manufacturers", "h", MANUFACTURER_FIELDS, "m"
    where, params = build_token_conditions(tokens, fields, prefix)
    params.update({"kind": kind, "lang": language_id, "limit": limit})
    return fetch_rows(
        con,
        f"""
        SELECT DISTINCT {alias}.id AS id, {alias}.name AS label
        FROM {table} {alias}
        LEFT JOIN seo s ON s.key_type = :kind AND s.key_id = {alias}.id
                       AND s.language_id = :lang
        WHERE {where}
        ORDER BY {alias}.name ASC, {alias}.id ASC
        LIMIT :limit
    """,
        params,
    )


def search_storefront(
    q: str,
    *,
    con: sqlite3.Connection,
    settings: Optional[SearchSettings] = None,
    customer: Optional[CustomerContext] = None,
) -> dict:
    """
    Products, categories, manufacturers for a (partial) query.
    Raises SearchError on store failures; the outcome is logged either way.
    """
    q = normalize_query(q)
    settings = settings or load_settings(con)
    customer = customer or CustomerContext(
        customer_group_id=settings.default_customer_group,
        language_id=settings.default_language,
    )

    if not q or len(q) < settings.min_chars:
        log_query(con, q, 0, "short")
        return {"query": q, "results": []}

    tokens = tokenize_query(q, settings.stop_words)
    grouped: dict[str, list[SearchResult]] = {kind: [] for kind in KIND_ORDER}
    try:
        if settings.enable_products:
            rows = _product_rows(con, tokens, q, settings, customer)
            grouped["product"] = assemble_results(
                con, rows, "product", customer.language_id
            )
        for kind, enabled, limit in (
            ("category", settings.enable_categories, settings.limit_categories),
            ("manufacturer", settings.enable_manufacturers, settings.limit_manufacturers),
        ):
            if not enabled:
                continue
            rows = _entity_rows(con, kind, tokens, limit, customer.language_id)
            grouped[kind] = assemble_results(con, rows, kind, customer.language_id)
    except sqlite3.Error as e:
        logger.error("search failed for %r: %s", q, e)
        log_query(con, q, 0, "error")
        raise SearchError("Search failed") from e
    except Exception:
        logger.exception("search failed for %r", q)
        log_query(con, q, 0, "error")
        raise

    results = [r.model_dump() for kind in KIND_ORDER for r in grouped[kind]]
    counts = {kind: len(grouped[kind]) for kind in KIND_ORDER}
    log_query(con, q, len(results), "ok" if results else "empty")
    return {
        "query": q,
        "results": results,
        "meta": {"counts": counts, "timestamp": int(time.time())},
    }


def main():
    ap = argparse.ArgumentParser(
        description="Storefront-Suche (Artikel, Kategorien, Hersteller) als JSON"
    )
    ap.add_argument("--q", required=True)
    ap.add_argument("--db", type=Path, default=None)
    ap.add_argument("--customer-group", type=int, default=None)
    ap.add_argument("--lang", type=int, default=None)
    args = ap.parse_args()

    con = connect(args.db)
    try:
        settings = load_settings(con)
        customer = CustomerContext(
            customer_group_id=args.customer_group or settings.default_customer_group,
            language_id=args.lang or settings.default_language,
        )
        out = search_storefront(args.q, con=con, settings=settings, customer=customer)
    finally:
        con.close()
    print(json.dumps(out, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
