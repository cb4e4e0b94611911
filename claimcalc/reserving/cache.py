"""In-process cache for list reads, keyed by (entity, project).

Entries are served while fresh and refetched once stale; unused entries are
dropped after their gc window. Each fetch takes a generation token for its
key. Starting a newer fetch, or invalidating the entity, advances the
generation, and a fetch that completes with an outdated token never lands in
the cache. Such a fetch answers with the newer cached value, or reloads once.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from claimcalc.config import CacheConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

HOD_CODES = "hod-codes"
PROJECT_RESERVES = "project-reserves"
PROJECT_FINANCIALS = "project-financials"
RESERVE_HISTORY = "reserve-history"
RESERVE_MOVEMENTS = "reserve-movements"
DAMAGE_ITEMS = "damage-items"
PC_SUMS = "pc-sums"
SCOPE_VARIATIONS = "scope-variations"
SURVEY_FORMS = "survey-forms"
CONTRACTOR_ASSESSMENTS = "contractor-assessments"

# Cached entities to drop after a successful write of each kind.
INVALIDATIONS: dict[str, tuple[str, ...]] = {
    "reserve": (PROJECT_RESERVES, PROJECT_FINANCIALS, RESERVE_HISTORY),
    "damage-item": (DAMAGE_ITEMS, PROJECT_RESERVES, PROJECT_FINANCIALS),
    "pc-sum": (PC_SUMS, PROJECT_RESERVES, PROJECT_FINANCIALS),
    "scope-variation": (SCOPE_VARIATIONS, PROJECT_FINANCIALS),
    "survey-form": (SURVEY_FORMS,),
    "contractor-assessment": (CONTRACTOR_ASSESSMENTS,),
    "reserve-movement": (RESERVE_MOVEMENTS,),
}

Key = tuple[str, Any]


@dataclass(frozen=True)
class CachePolicy:
    stale_seconds: float
    gc_seconds: float


@dataclass
class _Entry:
    value: Any
    fetched_at: float
    last_used: float


class QueryCache:
    """Cache of list-read results with staleness and stale-response protection.

    Args:
        policies: Per-entity policies; entities not listed use `default`
        default: Policy for everything else
        clock: Monotonic seconds source (injectable for tests)
    """

    def __init__(
        self,
        policies: Mapping[str, CachePolicy] | None = None,
        default: CachePolicy = CachePolicy(stale_seconds=300, gc_seconds=600),
        clock: Callable[[], float] = time.monotonic,
    ):
        self._policies = dict(policies or {})
        self._default = default
        self._clock = clock
        self._entries: dict[Key, _Entry] = {}
        self._generations: dict[Key, int] = {}

    @classmethod
    def from_config(
        cls,
        config: CacheConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> QueryCache:
        return cls(
            policies={
                HOD_CODES: CachePolicy(
                    config.hod_codes_stale_seconds, config.hod_codes_gc_seconds
                )
            },
            default=CachePolicy(config.default_stale_seconds, config.default_gc_seconds),
            clock=clock,
        )

    def policy(self, entity: str) -> CachePolicy:
        return self._policies.get(entity, self._default)

    def get(self, entity: str, key: Any = None) -> Any | None:
        """Return the cached value if it is still fresh, else None."""
        self.collect_garbage()
        entry = self._entries.get((entity, key))
        if entry is None:
            return None
        now = self._clock()
        if now - entry.fetched_at >= self.policy(entity).stale_seconds:
            return None
        entry.last_used = now
        return entry.value

    def begin(self, entity: str, key: Any = None) -> int:
        """Start a fetch for (entity, key); returns its generation token."""
        generation = self._generations.get((entity, key), 0) + 1
        self._generations[(entity, key)] = generation
        return generation

    def is_current(self, entity: str, key: Any, token: int) -> bool:
        return self._generations.get((entity, key), 0) == token

    def put(self, entity: str, key: Any, token: int, value: Any) -> bool:
        """Store a fetch result unless a newer fetch or an invalidation superseded it."""
        if not self.is_current(entity, key, token):
            logger.debug("Discarding superseded result for %s %s", entity, key)
            return False
        now = self._clock()
        self._entries[(entity, key)] = _Entry(value=value, fetched_at=now, last_used=now)
        return True

    async def fetch(
        self,
        entity: str,
        key: Any,
        loader: Callable[[], Awaitable[T]],
    ) -> T:
        """Serve a fresh cached value, or run `loader` and cache its result.

        When this fetch is superseded while awaiting, the newer cached value
        is returned if one has landed. Otherwise its result may predate a
        write, so `loader` runs once more under a new token and that second
        result is returned, cached only if nothing superseded it as well.
        """
        cached = self.get(entity, key)
        if cached is not None:
            return cached

        token = self.begin(entity, key)
        value = await loader()
        if self.put(entity, key, token, value):
            return value

        newer = self.get(entity, key)
        if newer is not None:
            return newer

        logger.debug("Reloading superseded fetch for %s %s", entity, key)
        token = self.begin(entity, key)
        value = await loader()
        self.put(entity, key, token, value)
        return value

    def invalidate(self, entity: str, key: Any = None) -> None:
        """Drop cached values for `entity` (one key, or all keys when key is None).

        In-flight fetches for the dropped keys are superseded as well.
        """
        for cache_key in list(self._generations):
            if cache_key[0] == entity and (key is None or cache_key[1] == key):
                self._generations[cache_key] += 1
        for cache_key in list(self._entries):
            if cache_key[0] == entity and (key is None or cache_key[1] == key):
                del self._entries[cache_key]

    def invalidate_after(self, mutation: str, key: Any = None) -> None:
        """Invalidate every entity affected by a successful write of `mutation`."""
        for entity in INVALIDATIONS[mutation]:
            self.invalidate(entity, key)

    def collect_garbage(self) -> int:
        now = self._clock()
        expired = [
            cache_key
            for cache_key, entry in self._entries.items()
            if now - entry.last_used >= self.policy(cache_key[0]).gc_seconds
        ]
        for cache_key in expired:
            del self._entries[cache_key]
        return len(expired)

    def keys(self) -> Iterable[Key]:
        return list(self._entries)
