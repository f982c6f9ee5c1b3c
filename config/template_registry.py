"""
Template Registry - Access to the VQF 902.x template field contracts.
The contracts are fixed by the document layouts and live in template_schemas.json,
so a placeholder change is a one-file edit.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from functools import lru_cache

from pydantic import BaseModel, Field


class TemplateId(str, Enum):
    IDENTIFICATION = "902.1e"
    RISK_PROFILE = "902.4e"
    CUSTOMER_PROFILE = "902.5e"
    FORM_A = "902.9e"
    FORM_K = "902.11e"


class RequestEncoding(str, Enum):
    """How the rendering backend expects a template's fields."""
    MULTIPART = "multipart"
    JSON = "json"


class UnknownTemplateError(KeyError):
    """Raised when a template id is not part of the 902.x vocabulary."""
    pass


class TemplateSchema(BaseModel):
    template_id: str
    name: str
    document_name: str
    file_name: str
    encoding: RequestEncoding
    date_format: str = "gb"  # "us" = MM/DD/YYYY, "gb" = DD/MM/YYYY
    fields: Dict[str, str] = Field(default_factory=dict)
    lists: Dict[str, str] = Field(default_factory=dict)


def get_config_path() -> Path:
    """Get the path to the config directory."""
    return Path(__file__).parent


@lru_cache(maxsize=1)
def load_template_config() -> dict:
    """
    Load the template contracts from JSON file.
    Cached for performance.
    """
    config_path = get_config_path() / "template_schemas.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Template config not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=None)
def get_template_schema(template_id: str) -> TemplateSchema:
    """Get the field contract of one template. Raises UnknownTemplateError."""
    config = load_template_config()
    for template in config["templates"]:
        if template["template_id"] == template_id:
            return TemplateSchema(**template)
    raise UnknownTemplateError(template_id)


def get_template_ids() -> List[str]:
    """All template ids, in canonical submission order."""
    return [t["template_id"] for t in load_template_config()["templates"]]


def is_known_template(template_id: str) -> bool:
    return template_id in get_template_ids()


def get_template_file_name(template_id: str) -> Optional[str]:
    """The .docx file the rendering backend fills for a template id."""
    if not is_known_template(template_id):
        return None
    return get_template_schema(template_id).file_name


def get_document_name(template_id: str) -> str:
    """Human-readable document name, falling back to the raw id."""
    if not is_known_template(template_id):
        return template_id
    return get_template_schema(template_id).document_name


def list_templates() -> List[dict]:
    """
    Summary of every template for display.
    Returns simplified list without the field contracts.
    """
    return [
        {
            "template_id": schema.template_id,
            "name": schema.name,
            "document_name": schema.document_name,
            "file_name": schema.file_name,
            "encoding": schema.encoding.value,
            "field_count": len(schema.fields),
        }
        for schema in (get_template_schema(tid) for tid in get_template_ids())
    ]
