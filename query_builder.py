# query_builder.py
from __future__ import annotations
from typing import Iterable, Sequence, Tuple

from search_normalize import LikeMode, like_value, split_tokens, token_variants

# (SQL-Ausdruck, Modus) – Modus "prefix" für Artikelnummer/Slug, "contains" für Texte
Field = Tuple[str, LikeMode]

MATCH_ALL = "1=1"

PRODUCT_PRIMARY_FIELDS: list[Field] = [
    ("p.name", "contains"),
    ("p.search_keywords", "contains"),
    ("p.article_no", "prefix"),
    ("s.slug", "prefix"),
]
PRODUCT_SECONDARY_FIELDS: list[Field] = [("p.name", "contains")]
CATEGORY_FIELDS: list[Field] = [("k.name", "contains"), ("s.slug", "prefix")]
MANUFACTURER_FIELDS: list[Field] = [("h.name", "contains"), ("s.slug", "prefix")]


def _like(expr: str, placeholder: str, *, escape: bool = False) -> str:
    # ulower() ist in store.connect() registriert und NULL-sicher
    clause = f"ulower({expr}) LIKE :{placeholder}"
    return clause + " ESCAPE '\\'" if escape else clause


def _token_clause(
    idx: int, token: str, fields: Sequence[Field], prefix: str, params: dict
) -> str | None:
    variants = token_variants(token) or [token]
    ors = []
    for v_idx, variant in enumerate(variants):
        for expr, mode in fields:
            ph = f"{prefix}_t{idx}_v{v_idx}_{mode}"
            if ph not in params:
                params[ph] = like_value(variant, mode)
            ors.append(_like(expr, ph))
    if not ors:
        return None
    return "(" + " OR ".join(ors) + ")"


def build_token_conditions(
    tokens: Iterable[str], fields: Sequence[Field], prefix: str
) -> tuple[str, dict]:
    """
    AND across tokens, OR across fields and variants of one token.
    No tokens -> "1=1" so the caller just lists the top rows.
    """
    params: dict = {}
    conds = []
    for idx, token in enumerate(tokens):
        clause = _token_clause(idx, token, fields, prefix, params)
        if clause:
            conds.append(clause)
    if not conds:
        return MATCH_ALL, {}
    return " AND ".join(conds), params


def build_product_conditions(
    tokens: Sequence[str],
    raw_query: str,
    *,
    keywords: Iterable[str] | None = None,
    stop_words: Iterable[str] | None = None,
) -> tuple[str, dict]:
    """
    Primary tokens are mandatory. Without any, the whole raw query is matched
    as escaped substring on the product name. Secondary tokens add one
    OR-group that must hit at least one of them.
    """
    primary, secondary = split_tokens(tokens, keywords, stop_words)

    if primary:
        where, params = build_token_conditions(
            primary, PRODUCT_PRIMARY_FIELDS, "p_primary"
        )
    else:
        params = {"p_fallback": like_value(raw_query.lower(), "contains", escape=True)}
        where = "(" + _like("p.name", "p_fallback", escape=True) + ")"

    sec = []
    for idx, token in enumerate(secondary):
        clause = _token_clause(idx, token, PRODUCT_SECONDARY_FIELDS, "p_secondary", params)
        if clause:
            sec.append(clause)
    if sec:
        where += " AND (" + " OR ".join(sec) + ")"
    return where, params
