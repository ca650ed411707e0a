from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import ParseError


class LatLng(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Record(BaseModel):
    """A single restaurant as served by the remote endpoint.

    Display-only fields (address, operating_hours, reviews, ...) are kept
    as pydantic extras so they survive a store round-trip untouched.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: int | str
    name: str
    cuisine_type: str
    neighborhood: str
    latlng: LatLng
    photograph: str | None = Field(default=None, description="Asset name without extension")


RecordCollection = list[Record]

_collection_adapter = TypeAdapter(list[Record])


def parse_collection(payload: Any) -> RecordCollection:
    """Validate a decoded JSON payload into a RecordCollection.

    Raises ``ParseError`` for a non-array payload, an invalid record, or a
    repeated id.
    """
    if not isinstance(payload, list):
        raise ParseError(f"Expected a JSON array of restaurants, got {type(payload).__name__}")

    try:
        records = _collection_adapter.validate_python(payload)
    except ValidationError as exc:
        raise ParseError(f"Invalid restaurant data: {exc.error_count()} validation error(s)") from exc

    seen: set[int | str] = set()
    for record in records:
        if record.id in seen:
            raise ParseError(f"Duplicate restaurant id {record.id!r}")
        seen.add(record.id)

    return records
