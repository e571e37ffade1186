# schemas.py
from typing import List, Literal
from pydantic import BaseModel, ConfigDict, field_validator

EntityKind = Literal["product", "category", "manufacturer"]

# feste Reihenfolge der Gruppen in der Antwort
KIND_ORDER: List[str] = ["product", "category", "manufacturer"]


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: EntityKind
    id: int
    label: str
    url: str

    @field_validator("id")
    @classmethod
    def _id_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("id muss ein positiver Primärschlüssel sein")
        return v

    @field_validator("url")
    @classmethod
    def _url_site_relative(cls, v: str) -> str:
        if not v.startswith("/") or v.startswith("//"):
            raise ValueError(f"'{v}' ist kein seitenrelativer Pfad")
        return v


class CustomerContext(BaseModel):
    customer_group_id: int = 1
    language_id: int = 1


def _entity(extra: dict | None = None) -> dict:
    props = {
        "id": {"type": "integer", "minimum": 1},
        "name": {"type": "string", "minLength": 1},
        "slug": {"type": "string"},
        "language_id": {"type": "integer", "minimum": 1},
    }
    props.update(extra or {})
    return {
        "type": "object",
        "properties": props,
        "required": ["id", "name"],
        "additionalProperties": False,
    }


# JSON-Katalog für `main.py import`
CATALOG_SCHEMA = {
    "type": "object",
    "properties": {
        "products": {
            "type": "array",
            "items": _entity(
                {
                    "article_no": {"type": ["string", "null"]},
                    "search_keywords": {"type": ["string", "null"]},
                    "hidden_for_groups": {
                        "type": "array",
                        "items": {"type": "integer"},
                    },
                }
            ),
        },
        "categories": {"type": "array", "items": _entity()},
        "manufacturers": {"type": "array", "items": _entity()},
    },
    "additionalProperties": False,
}
