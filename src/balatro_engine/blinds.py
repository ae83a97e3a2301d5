"""Blinds, antes and boss rules.

Each ante is three blinds: Small, Big and a Boss drawn from BOSS_BLINDS.
A boss carries one BossRule, a small tagged variant the run machine
pattern-matches on when a round starts and while it is played.
"""

import random
from dataclasses import dataclass
from enum import Enum

from balatro_engine.models import Card, Suit


class BlindType(Enum):
    """Types of blinds in an ante."""

    SMALL = "small"
    BIG = "big"
    BOSS = "boss"

    @property
    def display_name(self) -> str:
        return f"{self.value.title()} Blind"


# =============================================================================
# Boss rules
# =============================================================================


@dataclass(frozen=True)
class HandSizeReduction:
    """Shrinks the hand for the round."""

    amount: int = 0
    halve: bool = False

    def apply(self, hand_size: int) -> int:
        if self.halve:
            hand_size //= 2
        return max(1, hand_size - self.amount)


@dataclass(frozen=True)
class ForcedDiscardCount:
    """Discards random held cards after every hand played."""

    count: int


@dataclass(frozen=True)
class MinimumCardsPlayed:
    """Every played hand must contain at least ``count`` cards."""

    count: int


@dataclass(frozen=True)
class NoScoreForSuit:
    """Cards of the suit are debuffed: they score nothing."""

    suit: Suit

    def debuffs(self, card: Card) -> bool:
        # Wild cards keep scoring, stone cards have no suit
        return not card.is_stone and not card.is_wild and card.suit == self.suit


@dataclass(frozen=True)
class ExtraTarget:
    """Raises the score target."""

    multiplier: float


@dataclass(frozen=True)
class DiscardLimit:
    """Caps discards for the round."""

    discards: int


BossRule = (
    HandSizeReduction
    | ForcedDiscardCount
    | MinimumCardsPlayed
    | NoScoreForSuit
    | ExtraTarget
    | DiscardLimit
)


@dataclass(frozen=True)
class BossBlind:
    """A boss blind with special effects."""

    id: str
    name: str
    description: str
    rule: BossRule


BOSS_BLINDS: dict[str, BossBlind] = {
    "the_needle": BossBlind(
        id="the_needle",
        name="The Needle",
        description="Hand size is halved",
        rule=HandSizeReduction(halve=True),
    ),
    "the_manacle": BossBlind(
        id="the_manacle",
        name="The Manacle",
        description="-1 Hand Size",
        rule=HandSizeReduction(amount=1),
    ),
    "the_hook": BossBlind(
        id="the_hook",
        name="The Hook",
        description="Discards 2 random cards per hand played",
        rule=ForcedDiscardCount(2),
    ),
    "the_psychic": BossBlind(
        id="the_psychic",
        name="The Psychic",
        description="Must play 5 cards",
        rule=MinimumCardsPlayed(5),
    ),
    "the_club": BossBlind(
        id="the_club",
        name="The Club",
        description="All Club cards are debuffed",
        rule=NoScoreForSuit(Suit.CLUBS),
    ),
    "the_goad": BossBlind(
        id="the_goad",
        name="The Goad",
        description="All Spade cards are debuffed",
        rule=NoScoreForSuit(Suit.SPADES),
    ),
    "the_window": BossBlind(
        id="the_window",
        name="The Window",
        description="All Diamond cards are debuffed",
        rule=NoScoreForSuit(Suit.DIAMONDS),
    ),
    "the_head": BossBlind(
        id="the_head",
        name="The Head",
        description="All Heart cards are debuffed",
        rule=NoScoreForSuit(Suit.HEARTS),
    ),
    "the_wall": BossBlind(
        id="the_wall",
        name="The Wall",
        description="Extra large blind",
        rule=ExtraTarget(4.0),
    ),
    "the_water": BossBlind(
        id="the_water",
        name="The Water",
        description="Start with 0 discards",
        rule=DiscardLimit(0),
    ),
}


def get_all_boss_blind_ids() -> list[str]:
    """Get all boss blind IDs."""
    return list(BOSS_BLINDS.keys())


def choose_boss(rng: random.Random, previous: str | None = None) -> str:
    """Draw the boss for an ante, avoiding an immediate repeat."""
    candidates = [b for b in BOSS_BLINDS if b != previous]
    return rng.choice(candidates)


# =============================================================================
# Ante Progression
# =============================================================================


# Base chip requirements by ante
BASE_ANTE_CHIPS: dict[int, int] = {
    1: 300,
    2: 800,
    3: 2000,
    4: 5000,
    5: 11000,
    6: 20000,
    7: 35000,
    8: 50000,
}

BLIND_MULTIPLIERS: dict[BlindType, float] = {
    BlindType.SMALL: 1.0,
    BlindType.BIG: 1.5,
    BlindType.BOSS: 2.0,
}

BLIND_REWARDS: dict[BlindType, int] = {
    BlindType.SMALL: 3,
    BlindType.BIG: 4,
    BlindType.BOSS: 5,
}


def _ante_base_chips(ante: int) -> int:
    """Base chips for an ante; antes past 8 keep scaling.

    Formula: Ante8 x (1.6 + 0.75n)^(1 + 0.2n) ^ n, rounded to
    2 significant digits.
    """
    if ante in BASE_ANTE_CHIPS:
        return BASE_ANTE_CHIPS[ante]

    n = ante - 8
    base = 1.6 + (0.75 * n)
    exponent = 1 + (0.2 * n)
    result = int(BASE_ANTE_CHIPS[8] * (base ** exponent) ** n)

    if result >= 100:
        magnitude = 10 ** (len(str(result)) - 2)
        result = round(result / magnitude) * magnitude
    return result


def score_target(ante: int, blind_type: BlindType, boss: BossBlind | None = None) -> int:
    """Chips required to beat a blind.

    Args:
        ante: Current ante number (1-8, or higher)
        blind_type: Small, Big, or Boss
        boss: Boss blind definition (for Boss blinds)
    """
    if blind_type == BlindType.BOSS and boss is not None and isinstance(boss.rule, ExtraTarget):
        multiplier = boss.rule.multiplier
    else:
        multiplier = BLIND_MULTIPLIERS[blind_type]
    return int(_ante_base_chips(ante) * multiplier)


def blind_reward(blind_type: BlindType) -> int:
    """Money reward for beating a blind."""
    return BLIND_REWARDS[blind_type]


@dataclass(frozen=True)
class Blind:
    """A blind the player faces (or may skip)."""

    blind_type: BlindType
    ante: int
    target: int
    reward: int
    boss: BossBlind | None = None

    @property
    def name(self) -> str:
        if self.boss is not None:
            return self.boss.name
        return self.blind_type.display_name

    @property
    def can_skip(self) -> bool:
        return self.blind_type != BlindType.BOSS


def make_blind(ante: int, blind_type: BlindType, boss_id: str | None = None) -> Blind:
    """Build the blind of a given type for an ante."""
    boss = BOSS_BLINDS[boss_id] if blind_type == BlindType.BOSS and boss_id else None
    return Blind(
        blind_type=blind_type,
        ante=ante,
        target=score_target(ante, blind_type, boss),
        reward=blind_reward(blind_type),
        boss=boss,
    )


def next_blind_type(blind_type: BlindType) -> BlindType | None:
    """Blind after this one in the ante, or None after the Boss."""
    match blind_type:
        case BlindType.SMALL:
            return BlindType.BIG
        case BlindType.BIG:
            return BlindType.BOSS
        case BlindType.BOSS:
            return None
