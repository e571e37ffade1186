# settings.py
from __future__ import annotations
import logging, os, sqlite3, threading
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from store import read_settings_rows
from wordlists import DEFAULT_BRAND_KEYWORDS, DEFAULT_STOP_WORDS, load_wordlist, parse_words

load_dotenv()  # DSB_* aus .env

logger = logging.getLogger(__name__)

ENV_PREFIX = "DSB_"


def _as_int(v) -> int:
    # wie ein lockerer Cast: "8" -> 8, "abc" -> 0
    if isinstance(v, bool):
        return int(v)
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return 0


class SearchSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enable_products: bool = True
    enable_categories: bool = True
    enable_manufacturers: bool = True
    min_chars: int = 3
    limit_products: int = 5
    limit_categories: int = 3
    limit_manufacturers: int = 3
    default_customer_group: int = 1
    default_language: int = 1
    stop_words: List[str] = list(DEFAULT_STOP_WORDS)
    brand_keywords: List[str] = list(DEFAULT_BRAND_KEYWORDS)
    allowed_referers: List[str] = []

    @field_validator(
        "enable_products", "enable_categories", "enable_manufacturers", mode="before"
    )
    @classmethod
    def _yes_no(cls, v):
        if isinstance(v, str):
            return v.strip().upper() in {"Y", "YES", "1", "TRUE", "ON"}
        return bool(v)

    @field_validator("min_chars", mode="before")
    @classmethod
    def _min_chars(cls, v) -> int:
        return max(0, _as_int(v))

    @field_validator(
        "limit_products",
        "limit_categories",
        "limit_manufacturers",
        "default_customer_group",
        "default_language",
        mode="before",
    )
    @classmethod
    def _at_least_one(cls, v) -> int:
        return max(1, _as_int(v))

    @field_validator("stop_words", "brand_keywords", "allowed_referers", mode="before")
    @classmethod
    def _words(cls, v) -> List[str]:
        return parse_words(v)


def settings_from_env(environ: Optional[dict] = None) -> dict:
    env = os.environ if environ is None else environ
    values = {}
    for name in SearchSettings.model_fields:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None and raw != "":
            values[name] = raw
    # Wortlisten auch als Datei (ein Wort pro Zeile)
    for name, var in (("stop_words", "STOPWORDS_FILE"), ("brand_keywords", "KEYWORDS_FILE")):
        path = env.get(ENV_PREFIX + var)
        if path:
            try:
                words = load_wordlist(Path(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("word list %s unreadable, keeping defaults: %s", path, e)
                continue
            if words:
                values[name] = words
    return values


def build_settings(
    con: Optional[sqlite3.Connection] = None, environ: Optional[dict] = None
) -> SearchSettings:
    """Defaults < environment < settings table. Any failure falls back a layer."""
    values = settings_from_env(environ)
    if con is not None:
        try:
            # Shop-Admin speichert die Namen mit "dsb_"-Präfix
            for name, value in read_settings_rows(con).items():
                values[name.lower().removeprefix("dsb_")] = value
        except sqlite3.Error as e:
            logger.warning("settings lookup failed, using defaults: %s", e)
    try:
        return SearchSettings(**values)
    except ValidationError as e:
        logger.warning("invalid settings ignored: %s", e)
        return SearchSettings()


_cache: Optional[SearchSettings] = None
_cache_lock = threading.Lock()


def load_settings(con: Optional[sqlite3.Connection] = None) -> SearchSettings:
    """Cached once per process; invalidate_settings() drops the cache."""
    global _cache
    with _cache_lock:
        if _cache is None:
            _cache = build_settings(con)
        return _cache


def invalidate_settings() -> None:
    global _cache
    with _cache_lock:
        _cache = None
