# search_normalize.py
from __future__ import annotations
import re, unicodedata
from typing import Iterable, Literal

from wordlists import DEFAULT_BRAND_KEYWORDS, DEFAULT_STOP_WORDS

TokenClass = Literal["primary", "secondary"]
LikeMode = Literal["contains", "prefix", "suffix"]

MIN_TOKEN_LEN = 2
MIN_PRIMARY_LEN = 3
# Obergrenze je Anfrage, jedes Token ist eine weitere AND-Ebene im SQL
MAX_TOKENS = 32

# Umlaute → Digraph (nur Kleinbuchstaben, Tokens sind bereits lower-case)
DE_MAP = {"ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss"}
_DE_TABLE = str.maketrans(DE_MAP)

# alles außer Buchstaben/Ziffern; "_" zählt hier nicht als Wortzeichen
_NON_WORD = re.compile(r"[\W_]+")
_WILDCARDS = ("%", "_")


def normalize_query(q: str) -> str:
    """Trim and collapse whitespace runs to a single space."""
    return re.sub(r"\s+", " ", (q or "").strip())


def tokenize_query(raw: str, stop_words: Iterable[str] | None = None) -> list[str]:
    stops = set(DEFAULT_STOP_WORDS if stop_words is None else stop_words)
    # NFC, damit zerlegte Umlaute (u + ¨) nicht als Trenner gelten
    sanitized = _NON_WORD.sub(" ", unicodedata.normalize("NFC", raw or ""))
    tokens: list[str] = []
    for part in sanitized.split():
        t = part.lower()
        if len(t) < MIN_TOKEN_LEN or t in stops:
            continue
        if t not in tokens:
            tokens.append(t)
            if len(tokens) >= MAX_TOKENS:
                break
    return tokens


def classify_token(
    token: str,
    keywords: Iterable[str] | None = None,
    stop_words: Iterable[str] | None = None,
) -> TokenClass:
    t = token.lower()
    if t.isdigit():
        return "primary"
    if t in set(DEFAULT_BRAND_KEYWORDS if keywords is None else keywords):
        return "primary"
    stops = set(DEFAULT_STOP_WORDS if stop_words is None else stop_words)
    if len(t) >= MIN_PRIMARY_LEN and t not in stops:
        return "primary"
    return "secondary"


def split_tokens(
    tokens: Iterable[str],
    keywords: Iterable[str] | None = None,
    stop_words: Iterable[str] | None = None,
) -> tuple[list[str], list[str]]:
    keywords = list(DEFAULT_BRAND_KEYWORDS if keywords is None else keywords)
    stop_words = list(DEFAULT_STOP_WORDS if stop_words is None else stop_words)
    primary, secondary = [], []
    for t in tokens:
        if classify_token(t, keywords, stop_words) == "primary":
            primary.append(t)
        else:
            secondary.append(t)
    return primary, secondary


def transliterate(token: str) -> str:
    return token.translate(_DE_TABLE)


def token_variants(token: str) -> list[str]:
    """
    Original token plus its ASCII digraph form (ä→ae, ö→oe, ü→ue, ß→ss).
    Variants shorter than 2 chars (without wildcards) are dropped;
    empty input gives [] and the caller decides how to fall back.
    """
    base = (token or "").strip()
    if not base:
        return []
    variants = [base]
    folded = transliterate(base)
    if folded != base:
        variants.append(folded)
    return [
        v for v in variants if len(v.replace("%", "").replace("_", "")) >= MIN_TOKEN_LEN
    ]


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def like_value(value: str, mode: LikeMode = "contains", *, escape: bool = False) -> str:
    """
    Build a LIKE pattern.
    A value that already carries % or _ is taken as a ready pattern and passed
    through unchanged, unless escape=True (then the clause needs ESCAPE '\\').
    """
    v = (value or "").strip()
    if not v:
        return "%"
    if escape:
        v = escape_like(v)
    elif any(w in v for w in _WILDCARDS):
        return v
    if mode == "prefix":
        return v + "%"
    if mode == "suffix":
        return "%" + v
    return "%" + v + "%"
