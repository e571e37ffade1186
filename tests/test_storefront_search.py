"""Search orchestrator end to end against a temporary SQLite catalog."""

import json

import pytest

import storefront_search
from schemas import CustomerContext
from settings import SearchSettings
from store import upsert_catalog
from storefront_search import SearchError, search_storefront


def _log_row(con, query):
    return con.execute("SELECT * FROM search_log WHERE query=?", (query,)).fetchone()


class TestSearchStorefront:
    def test_bmw_i3_sitzbezug(self, con, settings):
        out = search_storefront("bmw i3 sitzbezug", con=con, settings=settings)

        assert out["query"] == "bmw i3 sitzbezug"
        assert out["results"] == [
            {
                "type": "product",
                "id": 1,
                "label": "BMW i3 Sitzbezug Set",
                "url": "/bmw-i3-sitzbezug-set",
            }
        ]
        assert out["meta"]["counts"] == {"product": 1, "category": 0, "manufacturer": 0}
        assert isinstance(out["meta"]["timestamp"], int)

    def test_short_query(self, con):
        out = search_storefront("a", con=con, settings=SearchSettings(min_chars=3))

        assert out == {"query": "a", "results": []}
        row = _log_row(con, "a")
        assert row["status"] == "short"
        assert row["results"] == 0

    def test_empty_query_not_logged(self, con, settings):
        assert search_storefront("   ", con=con, settings=settings) == {
            "query": "",
            "results": [],
        }
        assert con.execute("SELECT COUNT(*) FROM search_log").fetchone()[0] == 0

    def test_whitespace_normalized(self, con, settings):
        out = search_storefront("  bmw   i3 ", con=con, settings=settings)
        assert out["query"] == "bmw i3"

    def test_grouped_by_kind(self, con, settings):
        out = search_storefront("sitzbezüge", con=con, settings=settings)
        kinds = [r["type"] for r in out["results"]]
        assert kinds == sorted(kinds, key=["product", "category", "manufacturer"].index)
        assert {"type": "category", "id": 10, "label": "Sitzbezüge", "url": "/sitzbezuege"} in out["results"]
        assert out["meta"]["counts"]["manufacturer"] == 1

    def test_article_number_prefix(self, con, settings):
        out = search_storefront("LP500", con=con, settings=settings)
        assert [r["id"] for r in out["results"] if r["type"] == "product"] == [5]

    def test_search_keywords_match(self, con, settings):
        out = search_storefront("teppich", con=con, settings=settings)
        assert out["results"][0]["id"] == 2
        assert out["results"][0]["url"] == "/index.php?a=2"

    def test_umlaut_variant_matches_digraph(self, con, settings):
        out = search_storefront("kopfstützen", con=con, settings=settings)
        assert [r["id"] for r in out["results"] if r["type"] == "product"] == [6]

    def test_case_insensitive_umlauts(self, con, settings):
        out = search_storefront("SITZBEZÜGE", con=con, settings=settings)
        ids = {(r["type"], r["id"]) for r in out["results"]}
        assert ids == {("category", 10), ("manufacturer", 20)}

    def test_hidden_for_customer_group(self, con, settings):
        visible = search_storefront(
            "lenkradbezug", con=con, settings=settings,
            customer=CustomerContext(customer_group_id=1),
        )
        hidden = search_storefront(
            "lenkradbezug", con=con, settings=settings,
            customer=CustomerContext(customer_group_id=2),
        )
        assert visible["meta"]["counts"]["product"] == 1
        assert hidden["meta"]["counts"]["product"] == 0

    def test_no_tokens_lists_top_categories(self, con, settings):
        out = search_storefront("für die", con=con, settings=settings)
        cats = [r["label"] for r in out["results"] if r["type"] == "category"]
        assert cats == ["Fußmatten", "Lenkradbezüge", "Sitzbezüge"]

    def test_limits_per_kind(self, con):
        s = SearchSettings(limit_categories=1, limit_manufacturers=1)
        out = search_storefront("für die", con=con, settings=s)
        assert out["meta"]["counts"]["category"] == 1
        assert out["meta"]["counts"]["manufacturer"] == 1

    def test_disabled_kinds(self, con):
        s = SearchSettings(enable_categories="N", enable_manufacturers="N")
        out = search_storefront("sitzbezüge", con=con, settings=s)
        assert out["meta"]["counts"]["category"] == 0
        assert out["meta"]["counts"]["manufacturer"] == 0

    def test_alphabetical_and_idempotent(self, con, settings):
        first = search_storefront("bezug", con=con, settings=settings)
        second = search_storefront("bezug", con=con, settings=settings)
        labels = [r["label"] for r in first["results"] if r["type"] == "product"]
        assert labels == sorted(labels)
        assert json.dumps(first["results"]) == json.dumps(second["results"])

    def test_outcome_logged(self, con, settings):
        search_storefront("bmw i3 sitzbezug", con=con, settings=settings)
        search_storefront("qqqq", con=con, settings=settings)
        assert _log_row(con, "bmw i3 sitzbezug")["status"] == "ok"
        assert _log_row(con, "bmw i3 sitzbezug")["results"] == 1
        assert _log_row(con, "qqqq")["status"] == "empty"

    def test_very_long_query(self, con, settings):
        q = " ".join(f"w{i:04d}" for i in range(1200))
        out = search_storefront(q, con=con, settings=settings)
        assert out["meta"]["counts"] == {"product": 0, "category": 0, "manufacturer": 0}
        assert _log_row(con, q[:255])["status"] == "empty"

    def test_product_with_two_slugs_listed_once(self, con, settings):
        con.execute(
            "INSERT INTO seo(slug, key_type, key_id, language_id) VALUES('bmw-i3-bezug','product',1,1)"
        )
        out = search_storefront("bmw", con=con, settings=settings)
        products = [r for r in out["results"] if r["type"] == "product"]
        assert [r["id"] for r in products] == [1]
        assert products[0]["url"] == "/bmw-i3-bezug"

    def test_category_with_two_slugs_listed_once(self, con, settings):
        con.execute(
            "INSERT INTO seo(slug, key_type, key_id, language_id) VALUES('sitzbezuege-alt','category',10,1)"
        )
        out = search_storefront("sitzbezüge", con=con, settings=settings)
        assert [r["id"] for r in out["results"] if r["type"] == "category"] == [10]

    def test_slug_with_leading_slash_matches_prefix(self, con, settings):
        upsert_catalog(con, {"products": [{"id": 7, "name": "Zubehör Set", "slug": "/zzpflege-set"}]})
        out = search_storefront("zzpflege", con=con, settings=settings)
        products = [r for r in out["results"] if r["type"] == "product"]
        assert [(r["id"], r["url"]) for r in products] == [(7, "/zzpflege-set")]


class TestProductFallback:
    def test_fallback_runs_when_strict_empty(self, con, settings, monkeypatch):
        # strict query finds nothing
        monkeypatch.setattr(
            storefront_search, "build_product_conditions", lambda *a, **kw: ("0", {})
        )
        out = search_storefront("sitzbezug set", con=con, settings=settings)
        assert [r["id"] for r in out["results"] if r["type"] == "product"] == [1]

    def test_fallback_capped(self, con, monkeypatch):
        monkeypatch.setattr(
            storefront_search, "build_product_conditions", lambda *a, **kw: ("0", {})
        )
        out = search_storefront("e", con=con, settings=SearchSettings(min_chars=1, limit_products=2))
        assert out["meta"]["counts"]["product"] == 2

    def test_fallback_skipped_when_strict_hits(self, con, settings):
        statements = []
        con.set_trace_callback(statements.append)
        search_storefront("bmw", con=con, settings=settings)
        con.set_trace_callback(None)
        assert sum("FROM products p" in s for s in statements) == 1

    def test_secondary_token_narrows(self, con, settings):
        out = search_storefront("lederpflege ml", con=con, settings=settings)
        assert [r["id"] for r in out["results"] if r["type"] == "product"] == [5]

    def test_unmatched_secondary_token_excludes_then_falls_back(self, con, settings):
        statements = []
        con.set_trace_callback(statements.append)
        out = search_storefront("lederpflege xy", con=con, settings=settings)
        con.set_trace_callback(None)
        assert [r["id"] for r in out["results"] if r["type"] == "product"] == []
        assert sum("FROM products p" in s for s in statements) == 2


class TestFailures:
    def test_store_failure_raises_and_logs_error(self, con, settings):
        con.execute("DROP TABLE products")
        with pytest.raises(SearchError):
            search_storefront("bmw i3", con=con, settings=settings)
        assert _log_row(con, "bmw i3")["status"] == "error"

    def test_log_failure_does_not_break_search(self, con, settings, monkeypatch):
        import query_log

        def boom(_con):
            raise RuntimeError("disk full")

        monkeypatch.setattr(query_log.STATE, "ensure_search_log_table", boom)
        out = search_storefront("bmw i3 sitzbezug", con=con, settings=settings)
        assert out["meta"]["counts"]["product"] == 1

    def test_unexpected_failure_logged_and_reraised(self, con, settings, monkeypatch):
        def broken(*a, **kw):
            raise ValueError("bad row")

        monkeypatch.setattr(storefront_search, "assemble_results", broken)
        with pytest.raises(ValueError):
            search_storefront("bmw i3", con=con, settings=settings)
        assert _log_row(con, "bmw i3")["status"] == "error"
