"""
Embedding Text Builder

The unit of semantic embedding is a short labelled text built from a call's
interpreted metadata, never the raw transcript:

    Nombre: <name>
    Edad: <age>
    Descripcion: <description>
    Resumen: <summary>

Blank fields are omitted entirely. The summary is mandatory.
"""
from typing import Any, Mapping, Union

from pydantic import BaseModel

from chacotero.errors import ValidationError

EMBEDDING_FIELDS = (
    ("name", "Nombre"),
    ("age", "Edad"),
    ("description", "Descripcion"),
    ("summary", "Resumen"),
)


def _field_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return str(value).strip()


def build_embedding_text(metadata: Union[Mapping[str, Any], BaseModel]) -> str:
    """
    Serialize call metadata into the text that gets embedded.

    Args:
        metadata: Dict or model exposing name, age, description and summary

    Raises:
        ValidationError: summary is absent or blank
    """
    if isinstance(metadata, BaseModel):
        metadata = metadata.model_dump()

    values = {field: _field_text(metadata.get(field)) for field, _ in EMBEDDING_FIELDS}
    if not values["summary"]:
        raise ValidationError("Call metadata must contain a 'summary' to build the embedding text")

    return "\n".join(
        f"{label}: {values[field]}"
        for field, label in EMBEDDING_FIELDS
        if values[field]
    )
