"""
Seven-card hold'em hand evaluation.

Every 5-card subset of the seven cards is ranked on its own and the best
one is kept. Ranks carry a category and a tuple of kickers (rank indices,
0 = deuce .. 12 = ace, most significant first), so two ranks compare like
tuples: category first, then kickers element by element.
"""

from dataclasses import dataclass
from enum import IntEnum
from itertools import combinations
from typing import Sequence

from .cards import Card, RANK_STR, ensure_distinct


class HandCategory(IntEnum):
    """Hand categories, weakest first."""
    HIGH_CARD = 0
    PAIR = 1
    TWO_PAIR = 2
    TRIPS = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    QUADS = 7
    STRAIGHT_FLUSH = 8

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @property
    def kicker_count(self) -> int:
        """Number of kickers a rank of this category always carries."""
        return KICKER_COUNTS[self]


CATEGORY_LABELS = {
    HandCategory.HIGH_CARD: "High Card",
    HandCategory.PAIR: "Pair",
    HandCategory.TWO_PAIR: "Two Pair",
    HandCategory.TRIPS: "Three of a Kind",
    HandCategory.STRAIGHT: "Straight",
    HandCategory.FLUSH: "Flush",
    HandCategory.FULL_HOUSE: "Full House",
    HandCategory.QUADS: "Four of a Kind",
    HandCategory.STRAIGHT_FLUSH: "Straight Flush",
}

KICKER_COUNTS = {
    HandCategory.HIGH_CARD: 5,
    HandCategory.PAIR: 4,
    HandCategory.TWO_PAIR: 3,
    HandCategory.TRIPS: 3,
    HandCategory.STRAIGHT: 1,
    HandCategory.FLUSH: 5,
    HandCategory.FULL_HOUSE: 2,
    HandCategory.QUADS: 2,
    HandCategory.STRAIGHT_FLUSH: 1,
}

RANK_NAMES = {
    0: "Two", 1: "Three", 2: "Four", 3: "Five", 4: "Six", 5: "Seven",
    6: "Eight", 7: "Nine", 8: "Ten", 9: "Jack", 10: "Queen", 11: "King",
    12: "Ace",
}

# Rank indices of A-2-3-4-5
WHEEL = (12, 3, 2, 1, 0)
WHEEL_HIGH = 3


@dataclass(frozen=True, order=True)
class HandRank:
    """
    Strength of a made hand.

    Ordering compares category, then kickers element-wise. All ranks of one
    category carry the same number of kickers, so the tuple length rule
    (shorter loses when one is a prefix of the other) never decides a
    comparison between two evaluator results.
    """
    category: HandCategory
    kickers: tuple[int, ...]

    def describe(self) -> str:
        """Readable summary, e.g. 'Straight, Five high'."""
        top = RANK_NAMES[self.kickers[0]]
        cat = self.category
        if cat in (HandCategory.STRAIGHT, HandCategory.STRAIGHT_FLUSH):
            return f"{cat.label}, {top} high"
        if cat == HandCategory.FULL_HOUSE:
            return f"{cat.label}, {top}s full of {RANK_NAMES[self.kickers[1]]}s"
        if cat == HandCategory.TWO_PAIR:
            return f"{cat.label}, {top}s and {RANK_NAMES[self.kickers[1]]}s"
        if cat in (HandCategory.PAIR, HandCategory.TRIPS, HandCategory.QUADS):
            return f"{cat.label}, {top}s"
        return f"{cat.label}, {top} high"

    def short(self) -> str:
        """Kickers as rank characters, e.g. 'AKQ72'."""
        return "".join(RANK_STR[k + 2] for k in self.kickers)


def _straight_high(ranks: Sequence[int]) -> int:
    """
    Highest straight among distinct rank indices given in descending order.

    Returns the top rank index of the straight, 3 for the wheel, -1 if none.
    """
    streak = 1
    for i in range(1, len(ranks)):
        if ranks[i] == ranks[i - 1] - 1:
            streak += 1
            if streak >= 5:
                return ranks[i - 4]
        else:
            streak = 1

    # Ace is not adjacent to the deuce in index space
    if all(r in ranks for r in WHEEL):
        return WHEEL_HIGH
    return -1


def rank_five(indices: Sequence[int]) -> tuple[int, tuple[int, ...]]:
    """
    Rank five card indices as a (category, kickers) tuple.

    Tuples order exactly like `HandRank`, which keeps the 21-subset scan
    free of object construction.
    """
    freq = [0] * 13
    suit_counts = [0] * 4
    for i in indices:
        freq[i >> 2] += 1
        suit_counts[i & 3] += 1

    unique = [r for r in range(12, -1, -1) if freq[r]]
    straight_high = _straight_high(unique) if len(unique) >= 5 else -1

    if 5 in suit_counts:
        # Five cards of one suit means five distinct ranks
        sf_high = straight_high
        if sf_high >= 0:
            return HandCategory.STRAIGHT_FLUSH, (sf_high,)
        return HandCategory.FLUSH, tuple(unique[:5])

    fours = -1
    trips = []
    pairs = []
    singles = []
    for r in unique:
        n = freq[r]
        if n == 4:
            fours = r
        elif n == 3:
            trips.append(r)
        elif n == 2:
            pairs.append(r)
        else:
            singles.append(r)

    if fours >= 0:
        return HandCategory.QUADS, (fours, *singles[:1])
    if trips and pairs:
        return HandCategory.FULL_HOUSE, (trips[0], pairs[0])
    if straight_high >= 0:
        return HandCategory.STRAIGHT, (straight_high,)
    if trips:
        return HandCategory.TRIPS, (trips[0], *singles[:2])
    if len(pairs) >= 2:
        return HandCategory.TWO_PAIR, (pairs[0], pairs[1], *singles[:1])
    if pairs:
        return HandCategory.PAIR, (pairs[0], *singles[:3])
    return HandCategory.HIGH_CARD, tuple(singles[:5])


def _sorted_by_rank(cards: Sequence[Card]) -> list[Card]:
    return sorted(cards, key=lambda c: c.rank, reverse=True)


def rank_indices(indices: Sequence[int]) -> HandRank:
    """
    Best 5-of-7 rank for seven distinct card indices (no validation).

    Used by the equity engine's hot loop; public callers want `evaluate`.
    """
    category, kickers = max(rank_five(five) for five in combinations(indices, 5))
    return HandRank(HandCategory(category), kickers)


def _check_cards(cards: Sequence[Card], count: int) -> None:
    if len(cards) != count:
        raise ValueError(f"Evaluation requires exactly {count} cards, got {len(cards)}")
    ensure_distinct(cards)


def evaluate_five(cards: Sequence[Card]) -> HandRank:
    """Rank exactly five cards."""
    _check_cards(cards, 5)
    category, kickers = rank_five([c.index for c in cards])
    return HandRank(HandCategory(category), kickers)


def evaluate(cards: Sequence[Card]) -> HandRank:
    """
    Best 5-card hand that can be made from seven cards.

    Args:
        cards: Seven distinct cards (hole cards + board)

    Returns:
        HandRank of the strongest 5-card subset
    """
    _check_cards(cards, 7)
    return rank_indices([c.index for c in _sorted_by_rank(cards)])


def evaluate_with_best_five(cards: Sequence[Card]) -> tuple[HandRank, list[Card]]:
    """
    Best hand from seven cards plus the five cards that make it.

    Cards are scanned highest rank first; when several subsets tie for the
    best rank, the first one found is returned.
    """
    _check_cards(cards, 7)

    best_key = None
    best_five: list[Card] = []
    for five in combinations(_sorted_by_rank(cards), 5):
        key = rank_five([c.index for c in five])
        if best_key is None or key > best_key:
            best_key = key
            best_five = list(five)

    category, kickers = best_key
    return HandRank(HandCategory(category), kickers), best_five
