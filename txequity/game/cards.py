"""Card and deck representation utilities."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, Optional, Union

import numpy as np
from treys import Card as TreysCard


class Rank(IntEnum):
    """Card ranks (2-14 where 14 is Ace)."""
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14


class Suit(IntEnum):
    """Card suits."""
    CLUBS = 0
    DIAMONDS = 1
    HEARTS = 2
    SPADES = 3


# Mapping for string conversion
RANK_STR = {
    2: "2", 3: "3", 4: "4", 5: "5", 6: "6", 7: "7", 8: "8", 9: "9",
    10: "T", 11: "J", 12: "Q", 13: "K", 14: "A"
}
STR_RANK = {v: k for k, v in RANK_STR.items()}

SUIT_STR = {0: "c", 1: "d", 2: "h", 3: "s"}
STR_SUIT = {v: k for k, v in SUIT_STR.items()}

DECK_SIZE = 52


@dataclass(frozen=True)
class Card:
    """A playing card."""
    rank: int  # 2-14
    suit: int  # 0-3

    def __post_init__(self):
        if self.rank not in RANK_STR:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUIT_STR:
            raise ValueError(f"Invalid suit: {self.suit}")

    def __str__(self) -> str:
        return f"{RANK_STR[self.rank]}{SUIT_STR[self.suit]}"

    def __repr__(self) -> str:
        return str(self)

    @property
    def rank_index(self) -> int:
        """Rank as 0-12 (deuce is 0, ace is 12)."""
        return self.rank - 2

    @property
    def suit_index(self) -> int:
        return int(self.suit)

    @property
    def index(self) -> int:
        """Dense card index 0-51, ordered by rank then suit."""
        return (self.rank - 2) * 4 + self.suit

    @classmethod
    def from_index(cls, index: int) -> "Card":
        """Inverse of `index`."""
        if not 0 <= index < DECK_SIZE:
            raise ValueError(f"Invalid card index: {index}")
        return _CARDS_BY_INDEX[index]

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Parse card from string like 'As', 'Th', '2c'."""
        if len(s) != 2:
            raise ValueError(f"Invalid card string: {s}")
        rank_char = s[0].upper()
        suit_char = s[1].lower()

        if rank_char not in STR_RANK:
            raise ValueError(f"Invalid rank: {rank_char}")
        if suit_char not in STR_SUIT:
            raise ValueError(f"Invalid suit: {suit_char}")

        return cls(rank=STR_RANK[rank_char], suit=STR_SUIT[suit_char])

    def to_treys(self) -> int:
        """Convert to treys library card format."""
        return TreysCard.new(str(self))


_CARDS_BY_INDEX = tuple(
    Card(rank, suit)
    for rank in range(2, 15)
    for suit in range(4)
)


def parse_cards(cards: Union[str, Iterable[Union[str, Card]]]) -> list[Card]:
    """
    Parse cards from 'AsKh', 'As Kh' or an iterable of strings/cards.

    Examples:
        "AsKh" -> [As, Kh]
        "Qs, Js Ts" -> [Qs, Js, Ts]
        ["As", Card(13, 2)] -> [As, Kh]
    """
    if isinstance(cards, str):
        text = cards.replace(",", "").replace(" ", "")
        if len(text) % 2:
            raise ValueError(f"Invalid card list: {cards}")
        return [Card.from_string(text[i:i + 2]) for i in range(0, len(text), 2)]

    return [c if isinstance(c, Card) else Card.from_string(c) for c in cards]


def format_cards(cards: Iterable[Card]) -> str:
    return " ".join(str(c) for c in cards)


def new_deck() -> list[Card]:
    """All 52 cards, each exactly once (rank-major, suit-minor)."""
    return list(_CARDS_BY_INDEX)


def remove_cards(cards: Iterable[Card], used: Iterable[Card]) -> list[Card]:
    """Cards minus `used`. Cards in `used` that are absent are ignored."""
    dead = set(used)
    return [c for c in cards if c not in dead]


def shuffle(cards: list, rng: Optional[np.random.Generator] = None) -> None:
    """Shuffle a list in place with an unbiased Fisher-Yates permutation."""
    if rng is None:
        rng = np.random.default_rng()
    rng.shuffle(cards)


def ensure_distinct(cards: Iterable[Card]) -> None:
    """Raise if any card appears more than once."""
    seen = set()
    for card in cards:
        if card in seen:
            raise ValueError(f"Duplicate cards detected: {card}")
        seen.add(card)


class Deck:
    """A standard 52-card deck, minus the cards already in use."""

    def __init__(self, exclude: Iterable[Card] = ()):
        self.cards: list[Card] = []
        self.used: set[Card] = set()
        self.reset()
        self.remove(exclude)

    def reset(self) -> None:
        """Reset deck to full 52 cards."""
        self.cards = new_deck()
        self.used = set()

    def shuffle(self, rng: Optional[np.random.Generator] = None) -> None:
        """Shuffle the deck."""
        shuffle(self.cards, rng)

    def deal(self, n: int = 1) -> list[Card]:
        """Deal n cards from the deck."""
        if n > len(self.cards):
            raise ValueError(f"Cannot deal {n} cards, only {len(self.cards)} remaining")
        dealt = self.cards[:n]
        self.cards = self.cards[n:]
        self.used.update(dealt)
        return dealt

    def remove(self, cards: Iterable[Card]) -> None:
        """Remove specific cards from the deck."""
        cards = [c for c in cards if c not in self.used]
        self.cards = remove_cards(self.cards, cards)
        self.used.update(cards)

    def indices(self) -> list[int]:
        """Dense indices of the remaining cards."""
        return [c.index for c in self.cards]

    def __contains__(self, card: Card) -> bool:
        return card in self.cards

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __len__(self) -> int:
        return len(self.cards)
