"""
TXEquity: Texas Hold'em Equity Engine

Win/tie/lose probabilities and final hand category distribution for a
hero hand against random opponents, by exact enumeration when few cards
are unknown and multi-threaded Monte Carlo simulation otherwise.
"""

__version__ = "0.1.0"
