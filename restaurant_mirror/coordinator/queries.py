"""
Pure views over a full restaurant collection.

None of these touch the network or the store; the coordinator feeds them
the result of a single full-dataset query.
"""
from __future__ import annotations

import pandas as pd

from ..errors import NotFound
from ..records.models import Record, RecordCollection

ALL = "all"


def _facets(records: RecordCollection) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "cuisine_type": [r.cuisine_type for r in records],
            "neighborhood": [r.neighborhood for r in records],
        },
        dtype=object,
    )


def _select(records: RecordCollection, mask: pd.Series) -> RecordCollection:
    return [records[i] for i in mask[mask].index]


def find_by_id(records: RecordCollection, restaurant_id: int | str) -> Record:
    for record in records:
        if record.id == restaurant_id:
            return record
    raise NotFound(f"Restaurant {restaurant_id!r} does not exist")


def filter_by_cuisine(records: RecordCollection, cuisine: str) -> RecordCollection:
    return filter_by_cuisine_and_neighborhood(records, cuisine, ALL)


def filter_by_neighborhood(records: RecordCollection, neighborhood: str) -> RecordCollection:
    return filter_by_cuisine_and_neighborhood(records, ALL, neighborhood)


def filter_by_cuisine_and_neighborhood(
    records: RecordCollection,
    cuisine: str,
    neighborhood: str,
) -> RecordCollection:
    """Exact-match filter on both facets; ``"all"`` disables a facet."""
    df = _facets(records)
    mask = pd.Series(True, index=df.index)

    if cuisine != ALL:
        mask = mask & (df["cuisine_type"] == cuisine)

    if neighborhood != ALL:
        mask = mask & (df["neighborhood"] == neighborhood)

    return _select(records, mask)


def distinct_neighborhoods(records: RecordCollection) -> list[str]:
    """Unique neighborhoods in first-occurrence order."""
    return _facets(records)["neighborhood"].drop_duplicates().tolist()


def distinct_cuisines(records: RecordCollection) -> list[str]:
    """Unique cuisine types in first-occurrence order."""
    return _facets(records)["cuisine_type"].drop_duplicates().tolist()
