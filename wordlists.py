# wordlists.py
from __future__ import annotations
from pathlib import Path

# Füllwörter, Farben, generische Produktwörter
DEFAULT_STOP_WORDS = [
    "für", "fuer", "der", "die", "das", "und", "oder", "im", "in", "an", "am",
    "auf", "aus", "mit", "ohne", "von", "vom", "zum", "zur", "ab", "bis", "bj",
    "baujahr", "premium", "set", "komplettset", "schonbezüge", "schonbezuege",
    "farbe", "farben", "braun", "beige", "schwarz", "grau", "rot", "blau",
    "weiß", "weiss", "inkl", "kpl", "paket",
]

# Marken- und Modellkürzel, die trotz Kürze immer Pflicht-Token sind
DEFAULT_BRAND_KEYWORDS = [
    "bmw", "audi", "mercedes", "vw", "volkswagen",
    "i5", "i3", "e81", "fs5", "ot404", "ot405",
]


def parse_words(value) -> list[str]:
    """Accepts a list or a comma/newline separated string; lower-cased, deduped, order kept."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.replace("\n", ",").split(",")
    out: list[str] = []
    for w in value:
        w = str(w).strip().lower()
        if w and w not in out:
            out.append(w)
    return out


def load_wordlist(path: Path) -> list[str]:
    """
    One word per line, '#' starts a comment.
    Missing file -> empty list (caller keeps its defaults).
    """
    path = Path(path).expanduser()
    if not path.is_file():
        return []
    words = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.split("#", 1)[0]
        words.append(line)
    return parse_words(words)
