"""Poker hand classification.

Identifies the single best hand category for up to five played cards and
which of those cards score. Handles card modifiers like Wild (all suits)
and Stone (no rank or suit, always scores).

Policy decisions:
- Ace-low "wheel" straights (A-2-3-4-5) count as Straights.
- Straights and Flushes need five cards.
- High Card scores only the highest card; the leftmost wins ties.
"""

from collections import Counter
from dataclasses import dataclass

from balatro_engine.models import Card, HandType, Rank, Suit

MAX_HAND_CARDS = 5


@dataclass(frozen=True)
class HandResult:
    """Result of hand classification."""

    hand_type: HandType
    played_cards: tuple[Card, ...]
    scoring_indices: tuple[int, ...]  # Positions in played_cards, left to right

    @property
    def scoring_cards(self) -> list[Card]:
        """Cards that contribute chips, in played order."""
        return [self.played_cards[i] for i in self.scoring_indices]

    @property
    def kickers(self) -> list[Card]:
        """Played cards that do not score."""
        scoring = set(self.scoring_indices)
        return [c for i, c in enumerate(self.played_cards) if i not in scoring]


def evaluate_hand(cards: list[Card]) -> HandResult:
    """Classify a played hand.

    Args:
        cards: One to five cards in played order

    Returns:
        HandResult with the winning category and scoring card positions

    Raises:
        ValueError: if cards is empty or longer than five
    """
    if not cards:
        raise ValueError("Cannot evaluate empty hand")

    if len(cards) > MAX_HAND_CARDS:
        raise ValueError("Cannot evaluate more than 5 cards")

    normal = [i for i, c in enumerate(cards) if not c.is_stone]
    stones = [i for i, c in enumerate(cards) if c.is_stone]

    hand_type, scoring = _identify_hand(cards, normal)

    # Stone cards always score in addition to the hand's own cards
    indices = sorted(set(scoring) | set(stones))

    return HandResult(
        hand_type=hand_type,
        played_cards=tuple(cards),
        scoring_indices=tuple(indices),
    )


def contained_hands(cards: list[Card]) -> frozenset[HandType]:
    """Every category the played cards contain, not just the best one.

    A Full House contains a Pair and Three of a Kind, a Straight Flush
    contains a Straight and a Flush, and so on. High Card is always present.
    """
    normal = [c for c in cards if not c.is_stone]
    counts = sorted(Counter(c.rank for c in normal).values(), reverse=True)
    flush = _check_flush(normal)
    straight = _is_straight([c.rank for c in normal])

    found = {HandType.HIGH_CARD}
    if counts and counts[0] >= 2:
        found.add(HandType.PAIR)
    if len(counts) >= 2 and counts[0] >= 2 and counts[1] >= 2:
        found.add(HandType.TWO_PAIR)
    if counts and counts[0] >= 3:
        found.add(HandType.THREE_OF_A_KIND)
    if straight:
        found.add(HandType.STRAIGHT)
    if flush:
        found.add(HandType.FLUSH)
    if counts[:2] == [3, 2]:
        found.add(HandType.FULL_HOUSE)
    if counts and counts[0] >= 4:
        found.add(HandType.FOUR_OF_A_KIND)
    if straight and flush:
        found.add(HandType.STRAIGHT_FLUSH)
    if counts and counts[0] == 5:
        found.add(HandType.FIVE_OF_A_KIND)
    if counts[:2] == [3, 2] and flush:
        found.add(HandType.FLUSH_HOUSE)
    if counts and counts[0] == 5 and flush:
        found.add(HandType.FLUSH_FIVE)
    return frozenset(found)


def compare_hands(a: HandResult, b: HandResult) -> int:
    """Compare two hands. Returns positive if a > b, negative if a < b, 0 if equal.

    Category wins first; within a category the higher total rank chips win.
    """
    if a.hand_type != b.hand_type:
        return a.hand_type - b.hand_type

    def chips(result: HandResult) -> int:
        return sum(c.rank.chip_value for c in result.scoring_cards if not c.is_stone)

    return chips(a) - chips(b)


def _check_flush(cards: list[Card]) -> bool:
    """Check if cards form a flush, considering wild cards.

    Wild cards count as all suits, so they can complete any flush.
    """
    if len(cards) < MAX_HAND_CARDS:
        return False
    return any(all(c.has_suit(suit) for c in cards) for suit in Suit)


def _is_straight(ranks: list[Rank]) -> bool:
    """Check if ranks form a straight (five distinct consecutive ranks)."""
    if len(ranks) < MAX_HAND_CARDS:
        return False

    distinct = sorted(set(ranks))
    if len(distinct) != MAX_HAND_CARDS:
        return False

    if distinct[-1] - distinct[0] == 4:
        return True

    # Wheel (A-2-3-4-5)
    return distinct == [Rank.TWO, Rank.THREE, Rank.FOUR, Rank.FIVE, Rank.ACE]


def _identify_hand(cards: list[Card], normal: list[int]) -> tuple[HandType, list[int]]:
    """Identify the hand type and which positions score.

    Checks run from the highest category down so the first match wins.
    """
    normal_cards = [cards[i] for i in normal]
    if not normal_cards:
        # Only stone cards were played
        return HandType.HIGH_CARD, []

    rank_counts = Counter(c.rank for c in normal_cards)
    count_values = sorted(rank_counts.values(), reverse=True)
    is_flush = _check_flush(normal_cards)
    is_straight = _is_straight([c.rank for c in normal_cards])

    def with_count(n: int) -> list[int]:
        return [i for i in normal if rank_counts[cards[i].rank] == n]

    if count_values[0] == 5 and is_flush:
        return HandType.FLUSH_FIVE, normal

    if count_values[:2] == [3, 2] and is_flush:
        return HandType.FLUSH_HOUSE, normal

    if count_values[0] == 5:
        return HandType.FIVE_OF_A_KIND, normal

    if is_flush and is_straight:
        return HandType.STRAIGHT_FLUSH, normal

    if count_values[0] == 4:
        return HandType.FOUR_OF_A_KIND, with_count(4)

    if count_values[:2] == [3, 2]:
        return HandType.FULL_HOUSE, normal

    if is_flush:
        return HandType.FLUSH, normal

    if is_straight:
        return HandType.STRAIGHT, normal

    if count_values[0] == 3:
        return HandType.THREE_OF_A_KIND, with_count(3)

    if count_values[:2] == [2, 2]:
        return HandType.TWO_PAIR, with_count(2)

    if count_values[0] == 2:
        return HandType.PAIR, with_count(2)

    # High card - only the highest card scores, leftmost on ties
    best = max(normal, key=lambda i: (cards[i].rank, -i))
    return HandType.HIGH_CARD, [best]
