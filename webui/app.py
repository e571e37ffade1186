from __future__ import annotations
import json, logging, time
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from query_log import clamp_limit, get_popular_queries, get_suggestions
from schemas import CustomerContext
from settings import SearchSettings, load_settings
from store import connect
from storefront_search import SearchError, search_storefront

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("dsb.web")

app = FastAPI(title="Dynamic Search Bar")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "X-DSB": "ok",
}


class DsbJSONResponse(JSONResponse):
    media_type = "application/json; charset=utf-8"

    def render(self, content) -> bytes:
        # kompakt, Umlaute und Slashes unescaped
        return json.dumps(content, ensure_ascii=False, separators=(",", ":")).encode(
            "utf-8"
        )


def _json(payload: dict, status_code: int = 200) -> DsbJSONResponse:
    return DsbJSONResponse(payload, status_code=status_code, headers=NO_CACHE_HEADERS)


def _error(message: str, status_code: int) -> DsbJSONResponse:
    return _json({"error": True, "message": message}, status_code)


# -----------------------
# Dependencies
# -----------------------
def get_db():
    con = connect()
    try:
        yield con
    finally:
        con.close()


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        v = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return v if v > 0 else default


def _customer(request: Request, settings: SearchSettings) -> CustomerContext:
    return CustomerContext(
        customer_group_id=_positive_int(
            request.query_params.get("customer_group"), settings.default_customer_group
        ),
        language_id=_positive_int(
            request.query_params.get("lang"), settings.default_language
        ),
    )


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception):
    logger.exception("unhandled error on %s", request.url.path)
    return _error("Search service temporarily unavailable", 500)


# -----------------------
# Handler
# -----------------------
def _handle_search(q: str, request: Request, con) -> DsbJSONResponse:
    settings = load_settings(con)
    try:
        out = search_storefront(
            q, con=con, settings=settings, customer=_customer(request, settings)
        )
    except SearchError:
        return _error("Search failed", 500)
    return _json(out)


def _handle_api(
    action: str, prefix: str, limit: Optional[str], con
) -> DsbJSONResponse:
    if action == "popular":
        return _json({"popular": get_popular_queries(con, clamp_limit(limit, 8))})
    if action == "suggestions":
        return _json(
            {"suggestions": get_suggestions(con, prefix, clamp_limit(limit, 5))}
        )
    return _error("Unknown action", 400)


def _referer_allowed(request: Request, settings: SearchSettings) -> bool:
    referer = request.headers.get("referer", "")
    if not referer:
        return True
    allowed = [request.headers.get("host", ""), *settings.allowed_referers]
    return any(a and a in referer for a in allowed)


# -----------------------
# Routes
# -----------------------
@app.get("/search")
def search(request: Request, con=Depends(get_db), q: Annotated[str, Query()] = ""):
    return _handle_search(q, request, con)


@app.get("/api")
def api(
    con=Depends(get_db),
    action: Annotated[str, Query()] = "",
    prefix: Annotated[str, Query()] = "",
    limit: Annotated[Optional[str], Query()] = None,
):
    return _handle_api(action, prefix, limit, con)


@app.get("/ping")
def ping():
    return _json({"ok": True, "ts": int(time.time())})


# --- Kompatibilität: Endpunkte, die das Such-Widget aufruft ---
@app.get("/index.php")
def index_php(
    request: Request,
    con=Depends(get_db),
    dsb_search: Annotated[str, Query()] = "",
    dsb_api: Annotated[str, Query()] = "",
    q: Annotated[str, Query()] = "",
    action: Annotated[str, Query()] = "",
    prefix: Annotated[str, Query()] = "",
    limit: Annotated[Optional[str], Query()] = None,
):
    if dsb_search == "1":
        return _handle_search(q, request, con)
    if dsb_api == "1":
        return _handle_api(action, prefix, limit, con)
    return _error("Not found", 404)


@app.get("/io.php")
def io_php(
    request: Request,
    con=Depends(get_db),
    io: Annotated[str, Query()] = "",
    q: Annotated[str, Query()] = "",
):
    if io == "dsb_ping":
        return ping()
    if io == "dsb_suggest":
        return _handle_search(q, request, con)
    return _error("Not found", 404)


@app.get("/frontend/ajax/suggest.php")
def legacy_suggest(
    request: Request, con=Depends(get_db), q: Annotated[str, Query()] = ""
):
    if not _referer_allowed(request, load_settings(con)):
        return _error("Access denied", 403)
    return _handle_search(q, request, con)
