from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..errors import MirrorError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Callback = Callable[[MirrorError | None, T | None], None]


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Outcome of one query: exactly one of ``error`` / ``value`` is set."""

    error: MirrorError | None = None
    value: T | None = None

    def __post_init__(self) -> None:
        if (self.error is None) == (self.value is None):
            raise ValueError("QueryResult needs exactly one of error or value")

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


async def deliver(query: Awaitable[T], callback: Callback | None = None) -> QueryResult[T]:
    """
    Await ``query`` and report its outcome once.

    ``MirrorError`` lands in the error slot; anything else is a bug and
    propagates. The callback, if given, receives ``(error, None)`` or
    ``(None, value)``.
    """
    try:
        result: QueryResult[T] = QueryResult(value=await query)
    except MirrorError as exc:
        logger.debug("Query failed with %s: %s", exc.code, exc.message)
        result = QueryResult(error=exc)

    if callback is not None:
        callback(result.error, result.value)
    return result
