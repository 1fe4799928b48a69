"""Tests for equity calculations."""

import numpy as np
import pytest

from txequity.game.cards import Card
from txequity.game.equity import (
    CancellationToken, EquityCalculator, EquityConfig, EquityResult, WorkerTally,
    analyze_hand, clamp_opponents, compute_equity, should_calculate
)
from txequity.game.evaluator import HandCategory


@pytest.fixture
def board_flop(cards):
    return cards("Ks 7d 2c")


@pytest.fixture
def board_river(cards):
    return cards("Ks 7d 2c 9h 3s")


class TestEquityResult:
    def test_lose_is_derived(self):
        result = EquityResult(win=0.6, tie=0.1)
        assert result.lose == pytest.approx(0.3)
        assert result.win + result.tie + result.lose == pytest.approx(1.0)

    def test_equity_splits_ties(self):
        assert EquityResult(win=0.5, tie=0.2).equity == pytest.approx(0.6)

    def test_lose_never_negative(self):
        assert EquityResult(win=0.7, tie=0.31).lose == 0.0


class TestExactEnumeration:
    def test_board_plays(self, calculator, cards):
        # Broadway on board with no flush or pair possible: every deal splits
        report = calculator.compute(cards("7s 2d"), 1, cards("Ah Kc Qd Js Th"))

        assert report.method == "exact"
        assert report.trials == 990  # C(45, 2) opponent holdings
        assert report.win == 0.0
        assert report.tie == 1.0
        assert report.histogram == {HandCategory.STRAIGHT: 1.0}
        assert report.iterations_per_second == 0

    def test_river_probabilities_sum_to_one(self, calculator, cards, board_river):
        report = calculator.compute(cards("As Kd"), 1, board_river)

        assert report.win + report.tie + report.lose == pytest.approx(1.0)
        assert sum(report.histogram.values()) == pytest.approx(1.0)
        # Top pair, top kicker loses only to aces, sets and two pair
        assert 0.85 < report.win < 0.95

    def test_deterministic(self, calculator, cards, board_river):
        first = calculator.compute(cards("Qh Jh"), 1, board_river)
        second = calculator.compute(cards("Qh Jh"), 1, board_river)

        assert first.result == second.result
        assert first.histogram == second.histogram
        assert (first.wins, first.ties, first.trials) == (second.wins, second.ties, second.trials)

    def test_counts_match_probabilities(self, calculator, cards, board_river):
        report = calculator.compute(cards("7h 7c"), 1, board_river)
        assert report.win == report.wins / report.trials
        assert report.tie == report.ties / report.trials

    def test_best_five_on_river(self, calculator, cards, board_river):
        report = calculator.compute(cards("Kh Kd"), 1, board_river)
        assert set(report.best_five) == set(cards("Kh Kd Ks 9h 7d"))

    def test_cancelled_before_start(self, calculator, cards, board_river):
        token = CancellationToken()
        token.cancel()

        assert calculator.compute(cards("As Kd"), 1, board_river, token=token) is None
        assert calculator.latest is None


class TestMonteCarlo:
    def test_pocket_aces_preflop(self, calculator, cards):
        report = calculator.compute(cards("As Ah"), 1, target_iterations=6000)

        assert report.method == "monte_carlo"
        # Known benchmark: about 85% heads-up
        assert 0.82 < report.win < 0.88
        assert report.tie < 0.02
        assert report.best_five is None

    def test_converges_to_exact(self, calculator, cards, board_river):
        exact = calculator.exact_enumerate(cards("Qc Jc"), 1, board_river)
        sampled = calculator.monte_carlo(cards("Qc Jc"), 1, board_river, target_iterations=6000)

        assert sampled.win == pytest.approx(exact.win, abs=0.03)
        assert sampled.tie == pytest.approx(exact.tie, abs=0.03)
        assert sampled.histogram.keys() == exact.histogram.keys()

    def test_trials_split_across_workers(self, calculator, cards, board_flop):
        report = calculator.compute(cards("As Kh"), 1, board_flop, target_iterations=3001)

        # 3 workers x 1000, the remainder is dropped
        assert report.workers == 3
        assert report.trials == 3000
        assert report.wins + report.ties <= report.trials
        assert report.win + report.tie + report.lose == pytest.approx(1.0)
        assert sum(report.histogram.values()) == pytest.approx(1.0)
        assert report.iterations_per_second > 0

    def test_workers_capped_by_iterations(self, calculator, cards):
        report = calculator.compute(cards("As Kh"), 1, target_iterations=2)
        assert report.workers == 2
        assert report.trials == 2

    def test_default_worker_count(self):
        assert EquityConfig().resolve_workers() >= 2
        with pytest.raises(ValueError):
            EquityConfig(num_workers=0).resolve_workers()

    def test_seeded_runs_repeat(self, cards, board_flop, cache):
        config = EquityConfig(num_workers=3, report_interval=250, seed=11)
        a = EquityCalculator(config, cache).compute(cards("Jd Td"), 2, board_flop, target_iterations=1500)
        b = EquityCalculator(config, cache).compute(cards("Jd Td"), 2, board_flop, target_iterations=1500)

        assert (a.wins, a.ties, a.trials) == (b.wins, b.ties, b.trials)
        assert a.histogram == b.histogram

    def test_progress_reports(self, calculator, cards, board_flop):
        reports = []
        final = calculator.compute(
            cards("As Kh"), 1, board_flop, target_iterations=3000, progress=reports.append
        )

        # 3 workers, each reporting every 500 of its 1000 trials
        assert len(reports) == 6
        trials = [r.trials for r in reports]
        assert trials == sorted(trials)
        assert reports[-1] is final
        assert calculator.latest is final

    def test_cancel_mid_run(self, calculator, cards, board_flop):
        token = CancellationToken()
        reports = []

        def on_progress(report):
            reports.append(report)
            token.cancel()

        result = calculator.compute(
            cards("As Kh"), 1, board_flop, target_iterations=30_000,
            token=token, progress=on_progress,
        )

        assert result is None
        assert len(reports) == 1
        assert calculator.latest is reports[0]

    def test_multiway(self, calculator, cards, board_flop):
        # Equity decreases with more opponents
        heads_up = calculator.compute(cards("As Kh"), 1, board_flop, target_iterations=2000)
        three_way = calculator.compute(cards("As Kh"), 3, board_flop, target_iterations=2000)

        assert heads_up.win > three_way.win

    def test_worker_error_propagates(self, calculator, cards, board_flop, monkeypatch):
        def boom(indices):
            raise RuntimeError("evaluation failed")

        monkeypatch.setattr(calculator.cache, "rank_indices", boom)
        with pytest.raises(RuntimeError, match="evaluation failed"):
            calculator.compute(cards("As Kh"), 1, board_flop, target_iterations=300)


class TestWorkerTally:
    def test_sum(self):
        a = WorkerTally(3, 1, 10, np.arange(9))
        b = WorkerTally(2, 0, 5, np.ones(9, dtype=np.int64))
        total = a + b

        assert (total.wins, total.ties, total.trials) == (5, 1, 15)
        assert total.histogram.tolist() == list(range(1, 10))

    def test_empty(self):
        tally = WorkerTally()
        assert tally.trials == 0
        assert tally.histogram.sum() == 0


class TestPreconditions:
    def test_hole_count(self, calculator, cards):
        with pytest.raises(ValueError, match="Hole cards"):
            calculator.compute(cards("As"), 1)

    def test_board_length(self, calculator, cards):
        with pytest.raises(ValueError, match="Board"):
            calculator.compute(cards("As Kh"), 1, cards("2c 3d"))

    def test_opponents(self, calculator, cards):
        with pytest.raises(ValueError, match="opp_count"):
            calculator.compute(cards("As Kh"), 0)

    def test_duplicate_cards(self, calculator, cards, board_flop):
        with pytest.raises(ValueError, match="Duplicate"):
            calculator.compute(cards("Ks Kh"), 1, board_flop)

    def test_deck_too_small(self, calculator, cards):
        with pytest.raises(ValueError, match="Cannot deal"):
            calculator.compute(cards("As Kh"), 30)

    def test_iterations(self, calculator, cards):
        with pytest.raises(ValueError, match="target_iterations"):
            calculator.compute(cards("As Kh"), 1, target_iterations=0)


class TestHelpers:
    def test_clamp_opponents(self):
        assert clamp_opponents(0) == 1
        assert clamp_opponents(5) == 5
        assert clamp_opponents(12) == 8

    def test_should_calculate(self, cards):
        assert should_calculate(cards("As Kh"), [])
        assert should_calculate(cards("As Kh"), cards("2c 3d 4h"))
        assert not should_calculate(cards("As"), [])
        assert not should_calculate(cards("As Kh"), cards("2c 3d"))

    def test_analyze_hand_waits_for_cards(self):
        assert analyze_hand("As") is None
        assert analyze_hand("As Kh", "2c 3d") is None

    def test_analyze_hand_clamps(self, calculator):
        report = analyze_hand(
            "As Kh", "Ks 7d 2c 9h 3s", opponents=0, calculator=calculator
        )
        assert report.method == "exact"
        assert report.best_five[0] == Card.from_string("As")

    def test_compute_equity(self, cache):
        report = compute_equity(
            "Td Th", 1, "Ks 7d 2c", target_iterations=1200,
            num_workers=2, seed=3, cache=cache,
        )
        assert report.trials == 1200
        assert 0.0 <= report.win <= 1.0
        assert len(cache) > 0
