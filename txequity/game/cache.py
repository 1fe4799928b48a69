"""Shared memo of 7-card evaluations."""

from __future__ import annotations

import threading
from functools import lru_cache
from typing import Dict, Iterable, List, Sequence, Tuple

from .cards import Card
from .evaluator import HandCategory, HandRank, evaluate, rank_indices

CATEGORY_BITS = 4
KICKER_BITS = 5
MAX_KICKERS = 5

_CATEGORY_MASK = (1 << CATEGORY_BITS) - 1
_KICKER_MASK = (1 << KICKER_BITS) - 1

CacheKey = Tuple[int, ...]


def encode_rank(rank: HandRank) -> int:
    """
    Pack a rank into one int.

    Layout (low bits first): category in 4 bits, then up to five kickers in
    5 bits each.
    """
    code = int(rank.category) & _CATEGORY_MASK
    shift = CATEGORY_BITS
    for k in rank.kickers[:MAX_KICKERS]:
        code |= (k & _KICKER_MASK) << shift
        shift += KICKER_BITS
    return code


@lru_cache(maxsize=None)
def decode_rank(code: int) -> HandRank:
    """Inverse of `encode_rank`; reads only the kickers the category carries."""
    category = HandCategory(code & _CATEGORY_MASK)
    kickers = []
    shift = CATEGORY_BITS
    for _ in range(category.kicker_count):
        kickers.append((code >> shift) & _KICKER_MASK)
        shift += KICKER_BITS
    return HandRank(category, tuple(kickers))


def canonical_key(indices: Iterable[int]) -> CacheKey:
    return tuple(sorted(indices))


class EvaluationCache:
    """
    Thread-safe map from a 7-card set to its encoded HandRank.

    Keys are the sorted card indices, so any ordering of the same seven
    cards hits the same entry. The map is split into shards, each behind its
    own lock. Two workers missing the same key at once both evaluate and
    both store; the value is identical, so the second write is harmless.
    Entries are never evicted.
    """

    def __init__(self, num_shards: int = 16):
        if num_shards <= 0:
            raise ValueError("num_shards must be positive")
        self.num_shards = num_shards
        self._shards: List[Dict[CacheKey, int]] = [{} for _ in range(num_shards)]
        self._locks = [threading.Lock() for _ in range(num_shards)]

        # instrumentation, updated under the shard locks
        self._hits = [0] * num_shards
        self._misses = [0] * num_shards

    def __len__(self) -> int:
        return sum(len(s) for s in self._shards)

    @property
    def hits(self) -> int:
        return sum(self._hits)

    @property
    def misses(self) -> int:
        return sum(self._misses)

    def rank_indices(self, indices: Sequence[int]) -> HandRank:
        """Cached `evaluator.rank_indices`; indices are not validated."""
        key = canonical_key(indices)
        n = hash(key) % self.num_shards
        shard = self._shards[n]

        with self._locks[n]:
            code = shard.get(key)
            if code is not None:
                self._hits[n] += 1
                return decode_rank(code)
            self._misses[n] += 1

        # Evaluate outside the lock; other workers keep reading this shard
        rank = rank_indices(key)
        code = encode_rank(rank)
        with self._locks[n]:
            shard[key] = code
        return decode_rank(code)

    def rank7(self, cards: Sequence[Card]) -> HandRank:
        """Same result as `evaluate(cards)`, served from the cache when possible."""
        if len(cards) != 7 or len(set(cards)) != 7:
            # let the evaluator raise the precise error
            return evaluate(cards)
        return self.rank_indices([c.index for c in cards])

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "entries": len(self),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
        }

    def clear(self) -> None:
        for n in range(self.num_shards):
            with self._locks[n]:
                self._shards[n].clear()
                self._hits[n] = 0
                self._misses[n] = 0


_default_cache = EvaluationCache()


def default_cache() -> EvaluationCache:
    """Process-wide cache shared by every calculator that is not given one."""
    return _default_cache


def rank7(cards: Sequence[Card], cache: EvaluationCache | None = None) -> HandRank:
    """Evaluate seven cards through `cache` (the process-wide one by default)."""
    if cache is None:
        cache = _default_cache
    return cache.rank7(cards)
