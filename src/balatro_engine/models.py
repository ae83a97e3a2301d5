"""Core data models for the run state and playing cards."""

import random
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from balatro_engine.blinds import Blind
    from balatro_engine.consumables import ConsumableInstance
    from balatro_engine.jokers import JokerInstance
    from balatro_engine.scoring import ScoringBreakdown
    from balatro_engine.shop import ShopVisit, VoucherState


class Enhancement(Enum):
    """Enhancements applied by Tarot cards."""

    NONE = "none"
    BONUS = "bonus"  # +30 Chips when scored
    MULT = "mult"  # +4 Mult when scored
    WILD = "wild"  # Counts as all suits
    GLASS = "glass"  # x2 Mult when scored
    STEEL = "steel"  # x1.5 Mult while held in hand
    STONE = "stone"  # +50 Chips, no rank/suit, always scores
    GOLD = "gold"  # $3 if held in hand at end of round
    LUCKY = "lucky"  # 1/5 chance +20 Mult, 1/15 chance $20


class Edition(Enum):
    """Foil, Holographic and Polychrome editions."""

    BASE = "base"
    FOIL = "foil"  # +50 Chips
    HOLOGRAPHIC = "holo"  # +10 Mult
    POLYCHROME = "polychrome"  # x1.5 Mult


class Seal(Enum):
    """Seals stamped on a card."""

    NONE = "none"
    GOLD = "gold"  # $3 when played and scores
    RED = "red"  # Retrigger 1 time
    BLUE = "blue"  # Creates Planet card if held at end of round
    PURPLE = "purple"  # Creates Tarot card when discarded


class Suit(Enum):
    """Card suits."""

    SPADES = "S"
    HEARTS = "H"
    CLUBS = "C"
    DIAMONDS = "D"

    def __str__(self) -> str:
        symbols = {"S": "♠", "H": "♥", "C": "♣", "D": "♦"}
        return symbols[self.value]


class Rank(IntEnum):
    """Ranks 2..14; Ace is high."""

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

    def __str__(self) -> str:
        if self.value <= 10:
            return str(self.value)
        return {11: "J", 12: "Q", 13: "K", 14: "A"}[self.value]

    @property
    def chip_value(self) -> int:
        """Chips this rank adds when the card scores."""
        if self.value <= 10:
            return self.value
        if self.value == 14:  # Ace
            return 11
        return 10  # Face cards

    @property
    def is_face(self) -> bool:
        return self in (Rank.JACK, Rank.QUEEN, Rank.KING)

    def next_up(self) -> "Rank":
        """Rank one step higher, wrapping Ace to Two."""
        if self == Rank.ACE:
            return Rank.TWO
        return Rank(self.value + 1)


class HandType(IntEnum):
    """Poker hand categories ordered by precedence.

    Includes the three Balatro-specific categories above Straight Flush.
    A higher value always wins when several categories match.
    """

    HIGH_CARD = 1
    PAIR = 2
    TWO_PAIR = 3
    THREE_OF_A_KIND = 4
    STRAIGHT = 5
    FLUSH = 6
    FULL_HOUSE = 7
    FOUR_OF_A_KIND = 8
    STRAIGHT_FLUSH = 9
    FIVE_OF_A_KIND = 10
    FLUSH_HOUSE = 11
    FLUSH_FIVE = 12

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ").title().replace(" A ", " a ").replace(" Of ", " of ")

    @property
    def base_chips(self) -> int:
        """Base chip value for this hand type at level 1."""
        return _HAND_TABLE[self][0]

    @property
    def base_mult(self) -> int:
        """Base multiplier for this hand type at level 1."""
        return _HAND_TABLE[self][1]

    @property
    def level_chips(self) -> int:
        """Chips gained per Planet level."""
        return _HAND_TABLE[self][2]

    @property
    def level_mult(self) -> int:
        """Mult gained per Planet level."""
        return _HAND_TABLE[self][3]

    def chips_at(self, level: int) -> int:
        return self.base_chips + (level - 1) * self.level_chips

    def mult_at(self, level: int) -> int:
        return self.base_mult + (level - 1) * self.level_mult


# (base chips, base mult, chips per level, mult per level)
_HAND_TABLE: dict[HandType, tuple[int, int, int, int]] = {
    HandType.HIGH_CARD: (5, 1, 10, 1),
    HandType.PAIR: (10, 2, 15, 1),
    HandType.TWO_PAIR: (20, 2, 20, 1),
    HandType.THREE_OF_A_KIND: (30, 3, 20, 2),
    HandType.STRAIGHT: (30, 4, 30, 3),
    HandType.FLUSH: (35, 4, 15, 2),
    HandType.FULL_HOUSE: (40, 4, 25, 2),
    HandType.FOUR_OF_A_KIND: (60, 7, 30, 3),
    HandType.STRAIGHT_FLUSH: (100, 8, 40, 4),
    HandType.FIVE_OF_A_KIND: (120, 12, 35, 3),
    HandType.FLUSH_HOUSE: (140, 14, 40, 4),
    HandType.FLUSH_FIVE: (160, 16, 50, 3),
}


@dataclass(frozen=True, slots=True)
class Card:
    """A playing card with rank, suit, and optional modifiers.

    Cards are values: every transformation returns a new card and the
    zone holding the old one swaps it in place.
    """

    rank: Rank
    suit: Suit
    enhancement: Enhancement = Enhancement.NONE
    edition: Edition = Edition.BASE
    seal: Seal = Seal.NONE

    def __str__(self) -> str:
        base = f"{self.rank}{self.suit}"
        modifiers = []
        if self.enhancement != Enhancement.NONE:
            modifiers.append(self.enhancement.value)
        if self.edition != Edition.BASE:
            modifiers.append(self.edition.value)
        if self.seal != Seal.NONE:
            modifiers.append(f"{self.seal.value}-seal")
        if modifiers:
            return f"{base}[{','.join(modifiers)}]"
        return base

    def __repr__(self) -> str:
        return f"Card({self.rank!s}{self.suit!s})"

    @property
    def is_wild(self) -> bool:
        return self.enhancement == Enhancement.WILD

    @property
    def is_stone(self) -> bool:
        return self.enhancement == Enhancement.STONE

    @property
    def is_face(self) -> bool:
        return not self.is_stone and self.rank.is_face

    def has_suit(self, suit: Suit) -> bool:
        """Check if card has a specific suit (considering wild)."""
        if self.is_stone:
            return False
        if self.is_wild:
            return True
        return self.suit == suit

    def with_enhancement(self, enhancement: Enhancement) -> "Card":
        """Return a new card with the given enhancement."""
        return Card(self.rank, self.suit, enhancement, self.edition, self.seal)

    def with_edition(self, edition: Edition) -> "Card":
        """Return a new card with the given edition."""
        return Card(self.rank, self.suit, self.enhancement, edition, self.seal)

    def with_seal(self, seal: Seal) -> "Card":
        """Return a new card with the given seal."""
        return Card(self.rank, self.suit, self.enhancement, self.edition, seal)

    def with_suit(self, suit: Suit) -> "Card":
        return Card(self.rank, suit, self.enhancement, self.edition, self.seal)

    def with_rank(self, rank: Rank) -> "Card":
        return Card(rank, self.suit, self.enhancement, self.edition, self.seal)

    @classmethod
    def from_string(cls, s: str) -> Self:
        """Parse card from string like 'AS' (Ace of Spades) or '10H' (Ten of Hearts)."""
        s = s.upper().strip()
        suit_char = s[-1]
        rank_str = s[:-1]

        suit_map = {"S": Suit.SPADES, "H": Suit.HEARTS, "C": Suit.CLUBS, "D": Suit.DIAMONDS}
        rank_map = {str(r.value): r for r in Rank if r.value <= 10}
        rank_map.update({"J": Rank.JACK, "Q": Rank.QUEEN, "K": Rank.KING, "A": Rank.ACE})

        if suit_char not in suit_map:
            raise ValueError(f"Invalid suit: {suit_char}")
        if rank_str not in rank_map:
            raise ValueError(f"Invalid rank: {rank_str}")

        return cls(rank=rank_map[rank_str], suit=suit_map[suit_char])


@dataclass
class RunState:
    """Complete state of a single run.

    Owned by the game engine; other components receive it for the
    duration of one call and must not keep a reference.
    """

    # Card zones. Their combined size is constant within a round.
    deck: list[Card] = field(default_factory=list)
    hand: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    played_pile: list[Card] = field(default_factory=list)

    # Indices into hand, in selection order
    selected: list[int] = field(default_factory=list)

    # Jokers (ORDER MATTERS for effect resolution)
    jokers: list["JokerInstance"] = field(default_factory=list)
    consumables: list["ConsumableInstance"] = field(default_factory=list)
    joker_slots: int = 5
    consumable_slots: int = 2
    sell_fraction: float = 0.5

    # Economy
    money: int = 4

    # Progress
    ante: int = 1
    blind: "Blind | None" = None
    boss_id: str | None = None  # Boss waiting at the end of this ante

    # Round state
    hand_size: int = 8
    hands_remaining: int = 4
    discards_remaining: int = 3
    round_score: int = 0
    boss_disabled: bool = False

    # Hand levels (from planet cards) and play statistics
    hand_levels: dict[HandType, int] = field(
        default_factory=lambda: {ht: 1 for ht in HandType}
    )
    hands_played: dict[HandType, int] = field(
        default_factory=lambda: {ht: 0 for ht in HandType}
    )
    blinds_skipped: int = 0
    last_consumable_id: str | None = None  # For The Fool

    # Shop
    shop: "ShopVisit | None" = None
    vouchers: "VoucherState | None" = None

    # Presentation
    last_breakdown: "ScoringBreakdown | None" = None

    rng: random.Random = field(default_factory=random.Random)

    @property
    def full_deck(self) -> list[Card]:
        """Every card the player owns across all zones."""
        return self.deck + self.hand + self.discard_pile + self.played_pile

    @property
    def selected_cards(self) -> list[Card]:
        return [self.hand[i] for i in self.selected]

    @property
    def active_boss_rule(self):
        """Rule of the boss currently being played, unless disabled."""
        if self.blind is None or self.blind.boss is None or self.boss_disabled:
            return None
        return self.blind.boss.rule

    def level_of(self, hand_type: HandType) -> int:
        return self.hand_levels.get(hand_type, 1)


def create_standard_deck() -> list[Card]:
    """All 52 plain cards, suit by suit."""
    return [Card(rank=rank, suit=suit) for suit in Suit for rank in Rank]
