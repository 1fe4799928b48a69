"""Game representation and equity engine."""

from .cards import Card, Deck, Rank, Suit, parse_cards, format_cards, new_deck, remove_cards, shuffle
from .evaluator import HandCategory, HandRank, evaluate, evaluate_five, evaluate_with_best_five
from .cache import EvaluationCache, default_cache, rank7, encode_rank, decode_rank
from .equity import (
    CancellationToken,
    EquityCalculator,
    EquityConfig,
    EquityReport,
    EquityResult,
    WorkerTally,
    analyze_hand,
    clamp_opponents,
    compute_equity,
    should_calculate,
)

__all__ = [
    "Card",
    "Deck",
    "Rank",
    "Suit",
    "parse_cards",
    "format_cards",
    "new_deck",
    "remove_cards",
    "shuffle",
    "HandCategory",
    "HandRank",
    "evaluate",
    "evaluate_five",
    "evaluate_with_best_five",
    "EvaluationCache",
    "default_cache",
    "rank7",
    "encode_rank",
    "decode_rank",
    "CancellationToken",
    "EquityCalculator",
    "EquityConfig",
    "EquityReport",
    "EquityResult",
    "WorkerTally",
    "analyze_hand",
    "clamp_opponents",
    "compute_equity",
    "should_calculate",
]
