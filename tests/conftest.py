import pytest

import settings as settings_mod
from settings import SearchSettings
from store import connect, init_db, reset_store_state, upsert_catalog

CATALOG = {
    "products": [
        {
            "id": 1,
            "name": "BMW i3 Sitzbezug Set",
            "article_no": "SB-I3-01",
            "slug": "bmw-i3-sitzbezug-set",
        },
        {
            "id": 2,
            "name": "Audi A4 Fußmatten",
            "article_no": "FM-A4",
            "search_keywords": "matte teppich",
        },
        {
            "id": 3,
            "name": "Mercedes W204 Lenkradbezug",
            "article_no": "LB-204",
            "hidden_for_groups": [2],
        },
        {"id": 4, "name": "Schonbezug Universal", "slug": "/schonbezug-universal"},
        {"id": 5, "name": "Lederpflege 500 ml", "article_no": "LP500"},
        {"id": 6, "name": "Kopfstuetzen Bezug Leder", "article_no": "KS-6"},
    ],
    "categories": [
        {"id": 10, "name": "Sitzbezüge", "slug": "sitzbezuege"},
        {"id": 11, "name": "Fußmatten"},
        {"id": 12, "name": "Lenkradbezüge", "slug": "lenkrad"},
    ],
    "manufacturers": [
        {"id": 20, "name": "Bremer Sitzbezüge", "slug": "bremer"},
        {"id": 21, "name": "Walser"},
    ],
}


@pytest.fixture(autouse=True)
def _fresh_state(monkeypatch):
    for name in list(SearchSettings.model_fields) + ["STOPWORDS_FILE", "KEYWORDS_FILE"]:
        monkeypatch.delenv("DSB_" + name.upper(), raising=False)
    reset_store_state()
    settings_mod.invalidate_settings()
    yield
    reset_store_state()
    settings_mod.invalidate_settings()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "shop.sqlite"


@pytest.fixture
def con(db_path):
    c = connect(db_path)
    init_db(c)
    upsert_catalog(c, CATALOG)
    yield c
    c.close()


@pytest.fixture
def settings():
    return SearchSettings()
