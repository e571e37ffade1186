# main.py
import argparse, json, logging, sys
from datetime import datetime
from pathlib import Path

from jsonschema import ValidationError, validate

from query_log import get_popular_queries, get_suggestions
from schemas import CATALOG_SCHEMA
from settings import invalidate_settings, load_settings
from store import connect, init_db, set_setting, upsert_catalog
from storefront_search import SearchError, search_storefront

LOG_DIR = Path("./logs")


def setup_logging() -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / f"dsb_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def import_catalog(con, path: Path) -> dict:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    validate(instance=data, schema=CATALOG_SCHEMA)
    init_db(con)
    return upsert_catalog(con, data)


def _dump(obj) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def run(args) -> int:
    con = connect(args.db)
    try:
        if args.cmd == "init-db":
            init_db(con)
            print(f"[ok] Tabellen angelegt ({args.db or 'DSB_DB_PATH'})")
        elif args.cmd == "import":
            try:
                counts = import_catalog(con, args.file)
            except ValidationError as ex:
                print(f"[error] Katalog ungültig: {ex.message}")
                return 1
            for section, n in counts.items():
                print(f"[import] {section}: {n}")
        elif args.cmd == "search":
            try:
                _dump(search_storefront(args.q, con=con, settings=load_settings(con)))
            except SearchError as ex:
                print(f"[error] {ex}")
                return 1
        elif args.cmd == "popular":
            _dump({"popular": get_popular_queries(con, args.limit)})
        elif args.cmd == "suggest":
            _dump({"suggestions": get_suggestions(con, args.prefix, args.limit)})
        elif args.cmd == "set":
            init_db(con)
            set_setting(con, args.name, args.value)
            invalidate_settings()
            print(f"[ok] {args.name} = {args.value}")
    finally:
        con.close()
    return 0


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        description="Dynamic Search Bar - Katalog, Suche und Suchprotokoll verwalten."
    )
    ap.add_argument("--db", type=Path, default=None, help="SQLite-Datei (sonst DSB_DB_PATH)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init-db", help="Tabellen anlegen")

    p = sub.add_parser("import", help="JSON-Katalog importieren")
    p.add_argument("file", type=Path)

    p = sub.add_parser("search", help="Suche ausführen")
    p.add_argument("q")

    p = sub.add_parser("popular", help="Beliebte Suchen")
    p.add_argument("--limit", type=int, default=8)

    p = sub.add_parser("suggest", help="Vorschläge zu einem Präfix")
    p.add_argument("prefix")
    p.add_argument("--limit", type=int, default=5)

    p = sub.add_parser("set", help="Einstellung setzen (z. B. limit_products 8)")
    p.add_argument("name")
    p.add_argument("value")
    return ap.parse_args(argv)


if __name__ == "__main__":
    setup_logging()
    sys.exit(run(parse_args()))
