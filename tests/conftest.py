"""Pytest configuration and fixtures."""

import numpy as np
import pytest

from txequity.game.cache import EvaluationCache
from txequity.game.cards import parse_cards
from txequity.game.equity import EquityCalculator, EquityConfig


@pytest.fixture
def cards():
    """Parse a card string like 'As Kh' into a list of cards."""
    return parse_cards


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def cache():
    """A fresh cache so hit/miss counts are not shared between tests."""
    return EvaluationCache()


@pytest.fixture
def calculator(cache):
    config = EquityConfig(num_workers=3, report_interval=500, seed=7)
    return EquityCalculator(config, cache)
