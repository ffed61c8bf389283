"""Parsed-statute cache keyed by law and revision."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from .law_parser import LawNode, parse_law_data
from .settings import ParserSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    hit_count: int
    miss_count: int

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total > 0 else 0.0


class StatuteCache:
    """
    Holds parsed statute hierarchies, one per ``(law_id, revision_id)``.

    A hierarchy is built once per revision fetch and never mutated; fetching
    a new revision of a law yields a new key. Callers own the cache object
    and pass it to whoever needs it.
    """

    def __init__(self, settings: Optional[ParserSettings] = None):
        self._settings = settings or ParserSettings()
        self._entries: dict[tuple[str, str], tuple[LawNode, ...]] = {}
        self._hits = 0
        self._misses = 0

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, law_id: str, revision_id: str) -> Optional[tuple[LawNode, ...]]:
        """Get a cached hierarchy, or None."""
        nodes = self._entries.get((law_id, revision_id))
        if nodes is None:
            self._misses += 1
            logger.debug("Statute cache miss: %s@%s", law_id, revision_id)
            return None
        self._hits += 1
        logger.debug("Statute cache hit: %s@%s", law_id, revision_id)
        return nodes

    def put(self, law_id: str, revision_id: str, nodes: Iterable[LawNode]) -> tuple[LawNode, ...]:
        """Store an already parsed hierarchy and return the stored tuple."""
        stored = tuple(nodes)
        self._entries[(law_id, revision_id)] = stored
        return stored

    def get_or_parse(
        self,
        law_id: str,
        revision_id: str,
        loader: Callable[[], Any]
    ) -> tuple[LawNode, ...]:
        """
        Return the hierarchy for a revision, parsing it on first use.

        Every call for the same key returns the same tuple.

        Args:
            law_id: e-Gov law id
            revision_id: Identifier of the fetched revision
            loader: Called without arguments on a miss; returns the raw tag tree
        """
        nodes = self.get(law_id, revision_id)
        if nodes is not None:
            return nodes

        return self.put(law_id, revision_id, parse_law_data(loader(), self._settings))

    def invalidate(self, law_id: Optional[str] = None) -> int:
        """
        Drop cached revisions of one law, or everything when law_id is None.

        Returns:
            Number of entries removed
        """
        if law_id is None:
            removed = len(self._entries)
            self._entries.clear()
        else:
            keys = [k for k in self._entries if k[0] == law_id]
            for key in keys:
                del self._entries[key]
            removed = len(keys)
        logger.debug("Invalidated %d statute cache entries (law=%s)", removed, law_id)
        return removed

    def get_stats(self) -> CacheStats:
        return CacheStats(
            total_entries=len(self._entries),
            hit_count=self._hits,
            miss_count=self._misses,
        )
