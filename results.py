# results.py
from __future__ import annotations
import sqlite3
from typing import Iterable, Sequence

from schemas import SearchResult

# Fallback-URLs ohne SEO-Slug
FALLBACK_URLS = {
    "product": "/index.php?a={id}",
    "category": "/kategorie.php?k={id}",
    "manufacturer": "/hersteller.php?h={id}",
}


def resolve_slugs(
    con: sqlite3.Connection, kind: str, ids: Iterable[int], language_id: int = 1
) -> dict[int, str]:
    """One lookup for all ids of a kind. Several slugs per entity: alphabetically first wins."""
    ids = sorted({int(i) for i in ids})
    if not ids:
        return {}
    qmarks = ",".join("?" for _ in ids)
    rows = con.execute(
        f"SELECT key_id, slug FROM seo WHERE key_type=? AND language_id=? "
        f"AND key_id IN ({qmarks}) ORDER BY slug ASC",
        [kind, int(language_id), *ids],
    ).fetchall()
    out: dict[int, str] = {}
    for key_id, slug in rows:
        if slug:
            out.setdefault(int(key_id), slug)
    return out


def build_url(kind: str, entity_id: int, slug: str | None = None) -> str:
    slug = (slug or "").strip()
    if slug and slug.strip("/"):
        return "/" + slug.lstrip("/")
    return FALLBACK_URLS[kind].format(id=int(entity_id))


def assemble_results(
    con: sqlite3.Connection, rows: Sequence, kind: str, language_id: int = 1
) -> list[SearchResult]:
    slugs = resolve_slugs(con, kind, [r["id"] for r in rows], language_id)
    return [
        SearchResult(
            type=kind,
            id=int(r["id"]),
            label=r["label"],
            url=build_url(kind, r["id"], slugs.get(int(r["id"]))),
        )
        for r in rows
    ]
