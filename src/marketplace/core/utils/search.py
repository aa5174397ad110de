"""Ranked substring matching for suggestion endpoints."""

import heapq
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Generic, TypeVar

from marketplace.core.utils.text import normalize_query


T = TypeVar("T")

# Lower is better
EXACT_MATCH = 0
PREFIX_MATCH = 1
SUBSTRING_MATCH = 2
ANY_MATCH = 3


def match_rank(query: str, values: Iterable[str | None]) -> int | None:
    """Best rank of ``query`` against ``values``, None if nothing matches.

    ``query`` must already be normalized. An empty query matches
    everything with the lowest priority.
    """
    if not query:
        return ANY_MATCH

    best: int | None = None
    for value in values:
        if not value:
            continue
        text = value.lower()
        if text == query:
            return EXACT_MATCH
        if text.startswith(query):
            rank = PREFIX_MATCH
        elif query in text:
            rank = SUBSTRING_MATCH
        else:
            continue
        if best is None or rank < best:
            best = rank
    return best


class RankedMatches(Generic[T]):
    """The best ``limit`` candidates for a query, computed on iteration.

    Each iteration ranks the candidates again from the start, so the
    result can be consumed any number of times. Matches are ordered by
    rank, then by key.
    """

    def __init__(
        self,
        candidates: Sequence[T],
        query: str | None,
        fields: Callable[[T], Iterable[str | None]],
        key: Callable[[T], str],
        limit: int,
    ) -> None:
        self._candidates = candidates
        self._query = normalize_query(query)
        self._fields = fields
        self._key = key
        self._limit = max(0, limit)

    def _ranked(self) -> Iterator[tuple[int, str, int]]:
        for index, candidate in enumerate(self._candidates):
            rank = match_rank(self._query, self._fields(candidate))
            if rank is not None:
                yield rank, self._key(candidate), index

    def __iter__(self) -> Iterator[T]:
        for _, _, index in heapq.nsmallest(self._limit, self._ranked()):
            yield self._candidates[index]

    def __len__(self) -> int:
        return min(self._limit, sum(1 for _ in self._ranked()))

    @property
    def limit(self) -> int:
        return self._limit
