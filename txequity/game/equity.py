"""Equity calculation utilities."""

import logging
import os
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import combinations
from typing import Callable, Iterable, Optional, Union

import numpy as np

from .cache import EvaluationCache, default_cache
from .cards import Card, Deck, ensure_distinct, parse_cards
from .evaluator import HandCategory, HandRank, evaluate_with_best_five

logger = logging.getLogger(__name__)

MIN_OPPONENTS = 1
MAX_OPPONENTS = 8
BOARD_SIZES = (0, 3, 4, 5)
NUM_CATEGORIES = len(HandCategory)

CardsLike = Union[str, Iterable[Union[str, Card]]]


@dataclass
class EquityConfig:
    """Configuration for equity calculations."""
    target_iterations: int = 100_000
    num_workers: Optional[int] = None  # None = cpu_count - 1, at least 2
    report_interval: int = 2_000       # Trials between worker progress reports
    seed: Optional[int] = None         # Seeds every worker stream when set
    exact_threshold: int = 3           # Enumerate when this many cards or fewer are unknown

    def resolve_workers(self) -> int:
        """Number of Monte Carlo workers to start."""
        if self.num_workers is not None:
            if self.num_workers < 1:
                raise ValueError("num_workers must be at least 1")
            return self.num_workers
        return max(2, (os.cpu_count() or 1) - 1)


@dataclass(frozen=True)
class EquityResult:
    """Win and tie probabilities; lose is whatever is left."""
    win: float
    tie: float

    @property
    def lose(self) -> float:
        return max(0.0, 1.0 - self.win - self.tie)

    @property
    def equity(self) -> float:
        """Pot share with ties split two ways."""
        return self.win + self.tie / 2


@dataclass
class WorkerTally:
    """Counts gathered by one worker (or the sum of several)."""
    wins: int = 0
    ties: int = 0
    trials: int = 0
    histogram: np.ndarray = field(
        default_factory=lambda: np.zeros(NUM_CATEGORIES, dtype=np.int64)
    )

    def __add__(self, other: "WorkerTally") -> "WorkerTally":
        return WorkerTally(
            wins=self.wins + other.wins,
            ties=self.ties + other.ties,
            trials=self.trials + other.trials,
            histogram=self.histogram + other.histogram,
        )


@dataclass(frozen=True)
class EquityReport:
    """Outcome of one equity computation (or a partial one, while running)."""
    result: EquityResult
    histogram: dict[HandCategory, float]  # Observed categories only
    iterations_per_second: int
    trials: int
    wins: int
    ties: int
    method: str  # "exact" or "monte_carlo"
    workers: int = 1
    best_five: Optional[tuple[Card, ...]] = None  # Hero's best hand on a full board

    @property
    def win(self) -> float:
        return self.result.win

    @property
    def tie(self) -> float:
        return self.result.tie

    @property
    def lose(self) -> float:
        return self.result.lose


class CancellationToken:
    """Cooperative cancel flag, checked by the engine between trials."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


ProgressCallback = Callable[[EquityReport], None]


@dataclass
class _Spot:
    """Validated input of one computation."""
    hole: list[Card]
    board: list[Card]
    opp_count: int
    deck: Deck
    best_five: Optional[tuple[Card, ...]] = None

    @property
    def unknown_board(self) -> int:
        return 5 - len(self.board)

    @property
    def unknown_opp_cards(self) -> int:
        return 2 * self.opp_count

    @property
    def remain_to_deal(self) -> int:
        return self.unknown_board + self.unknown_opp_cards


def _best_opponent(rank, opp_cards: list[int], full_board: list[int]) -> HandRank:
    """Strongest rank among opponents dealt in consecutive pairs."""
    best = None
    for j in range(0, len(opp_cards), 2):
        r = rank([opp_cards[j], opp_cards[j + 1]] + full_board)
        if best is None or r > best:
            best = r
    return best


def _is_cancelled(token: Optional[CancellationToken]) -> bool:
    return token is not None and token.cancelled


class EquityCalculator:
    """
    Hero equity against random opponent hands.

    Uses exact enumeration when only a few cards are unknown and
    threaded Monte Carlo simulation otherwise. Every 7-card evaluation goes
    through a shared EvaluationCache.
    """

    def __init__(
        self,
        config: Optional[EquityConfig] = None,
        cache: Optional[EvaluationCache] = None,
    ):
        self.config = config or EquityConfig()
        self.cache = cache if cache is not None else default_cache()

        # Last published report (partial while a simulation runs)
        self.latest: Optional[EquityReport] = None
        self._publish_lock = threading.Lock()

    def reset(self) -> None:
        with self._publish_lock:
            self.latest = None

    def compute(
        self,
        hole: CardsLike,
        opp_count: int,
        board: CardsLike = (),
        target_iterations: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Optional[EquityReport]:
        """
        Calculate hero equity, picking the strategy from the unknown card count.

        Args:
            hole: Hero's two hole cards
            opp_count: Number of opponents (at least 1)
            board: Board cards (0, 3, 4 or 5)
            target_iterations: Monte Carlo budget (defaults to config)
            token: Cancels the computation when triggered
            progress: Called with each partial report

        Returns:
            Final report, or None if the computation was cancelled
        """
        spot = self._prepare(hole, opp_count, board)

        if spot.remain_to_deal <= self.config.exact_threshold:
            logger.debug(
                f"{spot.remain_to_deal} unknown cards, using exact enumeration"
            )
            return self._enumerate(spot, token, progress)

        logger.debug(f"{spot.remain_to_deal} unknown cards, using Monte Carlo")
        return self._simulate(spot, target_iterations, token, progress)

    def exact_enumerate(
        self,
        hole: CardsLike,
        opp_count: int,
        board: CardsLike = (),
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Optional[EquityReport]:
        """Enumerate every board runout and opponent holding."""
        return self._enumerate(self._prepare(hole, opp_count, board), token, progress)

    def monte_carlo(
        self,
        hole: CardsLike,
        opp_count: int,
        board: CardsLike = (),
        target_iterations: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Optional[EquityReport]:
        """Sample runouts on parallel workers."""
        spot = self._prepare(hole, opp_count, board)
        return self._simulate(spot, target_iterations, token, progress)

    def _prepare(self, hole: CardsLike, opp_count: int, board: CardsLike) -> _Spot:
        hole = parse_cards(hole)
        board = parse_cards(board)

        if len(hole) != 2:
            raise ValueError(f"Hole cards must be exactly 2 cards, got {len(hole)}")
        if len(board) not in BOARD_SIZES:
            raise ValueError(f"Board must have 0, 3, 4 or 5 cards, got {len(board)}")
        if opp_count < MIN_OPPONENTS:
            raise ValueError(f"opp_count must be at least {MIN_OPPONENTS}, got {opp_count}")
        ensure_distinct(hole + board)

        spot = _Spot(hole, board, opp_count, Deck(exclude=hole + board))
        if spot.remain_to_deal > len(spot.deck):
            raise ValueError(
                f"Cannot deal {spot.remain_to_deal} cards, only {len(spot.deck)} remaining"
            )
        if not spot.unknown_board:
            _, best = evaluate_with_best_five(hole + board)
            spot.best_five = tuple(best)
        return spot

    def _report(
        self,
        spot: _Spot,
        tally: WorkerTally,
        method: str,
        iterations_per_second: int = 0,
        workers: int = 1,
    ) -> EquityReport:
        trials = tally.trials
        histogram = {
            HandCategory(i): int(count) / trials
            for i, count in enumerate(tally.histogram)
            if count
        }
        return EquityReport(
            result=EquityResult(win=tally.wins / trials, tie=tally.ties / trials),
            histogram=histogram,
            iterations_per_second=iterations_per_second,
            trials=trials,
            wins=tally.wins,
            ties=tally.ties,
            method=method,
            workers=workers,
            best_five=spot.best_five,
        )

    def _publish(
        self,
        report: EquityReport,
        token: Optional[CancellationToken],
        progress: Optional[ProgressCallback],
    ) -> None:
        # A cancelled run must not replace what a newer run published
        with self._publish_lock:
            if _is_cancelled(token):
                return
            self.latest = report
        if progress is not None:
            progress(report)

    def _enumerate(
        self,
        spot: _Spot,
        token: Optional[CancellationToken],
        progress: Optional[ProgressCallback],
    ) -> Optional[EquityReport]:
        rank = self.cache.rank_indices
        hole = [c.index for c in spot.hole]
        board = [c.index for c in spot.board]
        deck = spot.deck.indices()

        wins = ties = trials = 0
        hist = [0] * NUM_CATEGORIES

        for runout in combinations(deck, spot.unknown_board):
            full_board = board + list(runout)
            hero = rank(hole + full_board)
            dealt = set(runout)
            remaining = [i for i in deck if i not in dealt]

            # Combination order decides the pairing: first two cards to
            # opponent 1, next two to opponent 2, and so on
            for opp_cards in combinations(remaining, spot.unknown_opp_cards):
                if _is_cancelled(token):
                    logger.debug(f"Enumeration cancelled after {trials} trials")
                    return None

                best_opp = _best_opponent(rank, opp_cards, full_board)
                if hero > best_opp:
                    wins += 1
                elif hero == best_opp:
                    ties += 1
                hist[hero.category] += 1
                trials += 1

        tally = WorkerTally(wins, ties, trials, np.array(hist, dtype=np.int64))
        report = self._report(spot, tally, "exact")
        logger.debug(f"Enumerated {trials} trials: win={report.win:.4f} tie={report.tie:.4f}")

        self._publish(report, token, progress)
        return None if _is_cancelled(token) else report

    def _simulate(
        self,
        spot: _Spot,
        target_iterations: Optional[int],
        token: Optional[CancellationToken],
        progress: Optional[ProgressCallback],
    ) -> Optional[EquityReport]:
        if target_iterations is None:
            target_iterations = self.config.target_iterations
        if target_iterations < 1:
            raise ValueError("target_iterations must be at least 1")

        # Never start a worker that would run zero trials
        num_workers = min(self.config.resolve_workers(), target_iterations)
        per_worker = target_iterations // num_workers
        streams = np.random.SeedSequence(self.config.seed).spawn(num_workers)

        logger.debug(
            f"Starting {num_workers} workers x {per_worker} trials "
            f"({spot.opp_count} opponents, {len(spot.board)} board cards)"
        )

        updates: queue.Queue = queue.Queue()
        stop = threading.Event()
        total = WorkerTally()
        report = None
        start = time.perf_counter()

        with ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="equity") as pool:
            futures = [
                pool.submit(
                    self._worker,
                    spot,
                    per_worker,
                    np.random.default_rng(stream),
                    token,
                    stop,
                    updates,
                )
                for stream in streams
            ]

            try:
                finished = 0
                while finished < num_workers:
                    delta = updates.get()
                    if delta is None:
                        finished += 1
                        continue

                    total = total + delta
                    elapsed = max(0.001, time.perf_counter() - start)
                    report = self._report(
                        spot,
                        total,
                        "monte_carlo",
                        iterations_per_second=int(total.trials / elapsed),
                        workers=num_workers,
                    )
                    self._publish(report, token, progress)
            except BaseException:
                stop.set()
                raise

        # Re-raise the first worker failure, if any
        for future in futures:
            future.result()

        if _is_cancelled(token):
            logger.debug(f"Simulation cancelled after {total.trials} trials")
            return None

        logger.info(
            f"Simulated {total.trials} trials on {num_workers} workers "
            f"in {time.perf_counter() - start:.2f}s: "
            f"win={report.win:.4f} tie={report.tie:.4f}"
        )
        return report

    def _worker(
        self,
        spot: _Spot,
        trials: int,
        rng: np.random.Generator,
        token: Optional[CancellationToken],
        stop: threading.Event,
        updates: queue.Queue,
    ) -> None:
        """
        Run `trials` random deals, posting WorkerTally deltas to `updates`.

        Always posts a final None so the coordinator can count finished
        workers, even when this one fails.
        """
        rank = self.cache.rank_indices
        interval = max(1, self.config.report_interval)
        hole = [c.index for c in spot.hole]
        board = [c.index for c in spot.board]
        n_opp = spot.unknown_opp_cards
        n_deal = spot.remain_to_deal

        # Private copy; only this worker shuffles it
        deck = np.array(spot.deck.indices(), dtype=np.int64)

        wins = ties = count = 0
        hist = [0] * NUM_CATEGORIES

        try:
            for _ in range(trials):
                if stop.is_set() or _is_cancelled(token):
                    break

                rng.shuffle(deck)
                dealt = deck[:n_deal].tolist()
                opp_cards = dealt[:n_opp]
                full_board = board + dealt[n_opp:]

                hero = rank(hole + full_board)
                best_opp = _best_opponent(rank, opp_cards, full_board)
                if hero > best_opp:
                    wins += 1
                elif hero == best_opp:
                    ties += 1
                hist[hero.category] += 1
                count += 1

                if count == interval:
                    updates.put(WorkerTally(wins, ties, count, np.array(hist, dtype=np.int64)))
                    wins = ties = count = 0
                    hist = [0] * NUM_CATEGORIES

            if count:
                updates.put(WorkerTally(wins, ties, count, np.array(hist, dtype=np.int64)))
        except BaseException:
            stop.set()
            raise
        finally:
            updates.put(None)


def clamp_opponents(n: int) -> int:
    """Clamp an opponent count to the supported 1-8 range."""
    return max(MIN_OPPONENTS, min(MAX_OPPONENTS, n))


def should_calculate(hole: list[Card], board: list[Card]) -> bool:
    """Both hole cards known and the board on a street (0, 3, 4 or 5 cards)."""
    return len(hole) == 2 and len(board) in BOARD_SIZES


def compute_equity(
    hole: CardsLike,
    opp_count: int,
    board: CardsLike = (),
    target_iterations: int = 100_000,
    num_workers: Optional[int] = None,
    seed: Optional[int] = None,
    token: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
    cache: Optional[EvaluationCache] = None,
) -> Optional[EquityReport]:
    """
    Calculate hero equity against random opponent hands.

    Args:
        hole: Hero's two hole cards
        opp_count: Number of opponents
        board: Board cards (0, 3, 4 or 5)
        target_iterations: Monte Carlo budget
        num_workers: Worker threads (None = cpu_count - 1, at least 2)
        seed: Seed for reproducible simulations
        token: Cancellation token
        progress: Called with each partial report
        cache: Evaluation cache (process-wide one by default)

    Returns:
        EquityReport, or None if cancelled
    """
    config = EquityConfig(
        target_iterations=target_iterations,
        num_workers=num_workers,
        seed=seed,
    )
    calculator = EquityCalculator(config, cache)
    return calculator.compute(hole, opp_count, board, token=token, progress=progress)


def analyze_hand(
    hole: CardsLike,
    board: CardsLike = (),
    opponents: int = 1,
    target_iterations: int = 120_000,
    calculator: Optional[EquityCalculator] = None,
    token: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
) -> Optional[EquityReport]:
    """
    Equity for a hand as shown on a table.

    Nothing is computed (None) until both hole cards are known and the board
    is on a street. The opponent count is clamped to 1-8.
    """
    hole = parse_cards(hole)
    board = parse_cards(board)
    if not should_calculate(hole, board):
        return None

    if calculator is None:
        calculator = EquityCalculator()
    return calculator.compute(
        hole,
        clamp_opponents(opponents),
        board,
        target_iterations=target_iterations,
        token=token,
        progress=progress,
    )
