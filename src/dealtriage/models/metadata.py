"""Typed metadata attached to leads.

Providers and importers attach loosely structured data to leads. Known
shapes are modelled explicitly; anything else is kept as a flat
key-value GenericMetadata entry. parse_metadata is the only way raw blobs
enter the model.
"""

import json
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError

Scalar = Union[str, int, float, bool, None]


class EnrichmentMetadata(BaseModel):
    """Listing details obtained from a listing-page enrichment."""

    kind: Literal["enrichment"] = "enrichment"
    listing_url: str | None = None
    mls_number: str | None = None
    days_on_market: int | None = Field(default=None, ge=0)
    description: str | None = None
    photos: list[str] = Field(default_factory=list)
    enriched_at: datetime | None = None


class ConsolidationMetadata(BaseModel):
    """Record of a duplicate ingestion merged into this lead."""

    kind: Literal["consolidation"] = "consolidation"
    source: str
    previous_price: float | None = None
    new_price: float | None = None
    price_change_percent: float | None = None
    consolidated_at: datetime


class GenericMetadata(BaseModel):
    """Fallback for metadata with no known shape."""

    kind: Literal["generic"] = "generic"
    values: dict[str, Scalar] = Field(default_factory=dict)


LeadMetadata = Annotated[
    Union[EnrichmentMetadata, ConsolidationMetadata, GenericMetadata],
    Field(discriminator="kind"),
]

_KNOWN_KINDS = {"enrichment", "consolidation", "generic"}
_adapter: TypeAdapter = TypeAdapter(LeadMetadata)


def _flatten(raw: dict[str, Any]) -> dict[str, Scalar]:
    values: dict[str, Scalar] = {}
    for key, value in raw.items():
        if key == "kind":
            continue
        if isinstance(value, (str, int, float, bool)) or value is None:
            values[key] = value
        else:
            values[key] = json.dumps(value, default=str)
    return values


def parse_metadata(raw: str | dict[str, Any]) -> LeadMetadata:
    """Validate a raw metadata blob into one of the known shapes.

    Args:
        raw: JSON text or an already-decoded mapping

    Returns:
        EnrichmentMetadata, ConsolidationMetadata or GenericMetadata

    Raises:
        ValidationError: If the blob is not a JSON object, or claims a known
            kind but does not match its shape
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError("metadata", f"invalid JSON: {e.msg}") from e
    if not isinstance(raw, dict):
        raise ValidationError("metadata", "expected a JSON object")

    kind = raw.get("kind")
    if kind not in _KNOWN_KINDS:
        return GenericMetadata(values=_flatten(raw))
    if kind == "generic" and "values" not in raw:
        return GenericMetadata(values=_flatten(raw))

    try:
        return _adapter.validate_python(raw)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"metadata.{loc}", first["msg"]) from e
