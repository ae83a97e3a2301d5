"""Joker definitions and instances.

CRITICAL: Joker order matters for effect resolution. Effects are applied
in the order jokers appear in the player's joker slots.

Every joker is a catalog entry made of Modifier descriptions which the
scoring pipeline interprets generically. Effects that need bespoke logic
use an EffectKind.CUSTOM modifier dispatched through CUSTOM_EFFECTS.

Mutable per-instance data (Popcorn's remaining mult, Egg's sell bonus)
lives on JokerInstance, never on the shared definition.
"""

import math
from dataclasses import dataclass, field
from enum import Enum

from balatro_engine.models import Enhancement, HandType, Rank, Suit
from balatro_engine.modifiers import (
    Condition,
    EffectKind,
    Modifier,
    Scale,
    TriggerStage,
)


class JokerRarity(Enum):
    """Joker rarity tiers."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class JokerDefinition:
    """Static definition of a joker type."""

    id: str
    name: str
    description: str
    rarity: JokerRarity
    base_cost: int
    modifiers: tuple[Modifier, ...] = ()
    initial_state: tuple[tuple[str, int], ...] = ()
    copies_right: bool = False  # Blueprint

    def create_instance(self, purchase_price: int | None = None) -> "JokerInstance":
        """Create a new instance of this joker."""
        return JokerInstance(
            definition=self,
            purchase_price=self.base_cost if purchase_price is None else purchase_price,
            state=dict(self.initial_state),
        )


@dataclass
class JokerInstance:
    """A specific joker instance with its current state.

    Jokers can have mutable state (e.g., Popcorn's mult,
    Ice Cream's remaining chips).
    """

    definition: JokerDefinition
    purchase_price: int = 0
    state: dict = field(default_factory=dict)
    sell_bonus: int = 0

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    def sell_value(self, fraction: float = 0.5) -> int:
        """Money received when selling this joker."""
        return max(1, math.floor(self.purchase_price * fraction)) + self.sell_bonus

    def __str__(self) -> str:
        return self.name


def effective_modifiers(
    jokers: list[JokerInstance], index: int
) -> list[tuple[Modifier, JokerInstance]]:
    """Modifiers the joker in slot ``index`` contributes, with their owner.

    Blueprint contributes the modifiers of the joker to its right and
    counters are read from that joker. A Blueprint chain resolves to the
    first non-copying joker; a Blueprint in the last slot does nothing.
    """
    position = index
    while position < len(jokers) and jokers[position].definition.copies_right:
        position += 1
    if position >= len(jokers):
        return []
    owner = jokers[position]
    return [(modifier, owner) for modifier in owner.definition.modifiers]


def all_effective_modifiers(
    jokers: list[JokerInstance],
) -> list[tuple[Modifier, JokerInstance]]:
    """Modifiers of every joker in slot order, Blueprint resolved."""
    resolved = []
    for i in range(len(jokers)):
        resolved.extend(effective_modifiers(jokers, i))
    return resolved


# =============================================================================
# Catalog building helpers
# =============================================================================


def _hand(kind: EffectKind, amount: float, condition: Condition = Condition(), **kwargs) -> Modifier:
    return Modifier(TriggerStage.HAND, kind, amount, condition=condition, **kwargs)


def _scored(kind: EffectKind, amount: float, **condition) -> Modifier:
    return Modifier(TriggerStage.SCORED_CARD, kind, amount, condition=Condition(**condition))


def _held(kind: EffectKind, amount: float, **condition) -> Modifier:
    return Modifier(TriggerStage.HELD_CARD, kind, amount, condition=Condition(**condition))


def _passive(kind: EffectKind, amount: float) -> Modifier:
    return Modifier(TriggerStage.PASSIVE, kind, amount)


def _custom(stage: TriggerStage, custom_id: str, amount: float, counter: str | None = None) -> Modifier:
    return Modifier(stage, EffectKind.CUSTOM, amount, counter=counter, custom_id=custom_id)


def _counter(stage: TriggerStage, kind: EffectKind, amount: float, counter: str, **condition) -> Modifier:
    """Modifier reading or changing one of the owner's counters."""
    scale = Scale.COUNTER if kind in (EffectKind.ADD_CHIPS, EffectKind.ADD_MULT, EffectKind.X_MULT) else Scale.FLAT
    return Modifier(stage, kind, amount, condition=Condition(**condition), scale=scale, counter=counter)


def _contains(hand_type: HandType) -> Condition:
    return Condition(contains=hand_type)


def _suit(suit: Suit) -> frozenset[Suit]:
    return frozenset({suit})


def _ranks(*ranks: Rank) -> frozenset[Rank]:
    return frozenset(ranks)


FIBONACCI_RANKS = _ranks(Rank.ACE, Rank.TWO, Rank.THREE, Rank.FIVE, Rank.EIGHT)
ODD_RANKS = _ranks(Rank.ACE, Rank.NINE, Rank.SEVEN, Rank.FIVE, Rank.THREE)
EVEN_RANKS = _ranks(Rank.TEN, Rank.EIGHT, Rank.SIX, Rank.FOUR, Rank.TWO)


def _define(
    id: str,
    name: str,
    description: str,
    rarity: JokerRarity,
    base_cost: int,
    *modifiers: Modifier,
    **state: int,
) -> JokerDefinition:
    return JokerDefinition(
        id=id,
        name=name,
        description=description,
        rarity=rarity,
        base_cost=base_cost,
        modifiers=modifiers,
        initial_state=tuple(state.items()),
    )


C, U, R, L = JokerRarity.COMMON, JokerRarity.UNCOMMON, JokerRarity.RARE, JokerRarity.LEGENDARY
ADD_CHIPS, ADD_MULT, X_MULT = EffectKind.ADD_CHIPS, EffectKind.ADD_MULT, EffectKind.X_MULT
HAND, SCORED, ROUND_END = TriggerStage.HAND, TriggerStage.SCORED_CARD, TriggerStage.ROUND_END


_DEFINITIONS: list[JokerDefinition] = [
    # Flat and hand-type jokers
    _define("joker", "Joker", "+4 Mult", C, 2, _hand(ADD_MULT, 4)),
    _define("gros_michel", "Gros Michel", "+15 Mult", C, 5, _hand(ADD_MULT, 15)),
    _define("cavendish", "Cavendish", "x3 Mult", C, 4, _hand(X_MULT, 3)),
    _define(
        "jolly_joker", "Jolly Joker", "+8 Mult if played hand contains a Pair", C, 3,
        _hand(ADD_MULT, 8, _contains(HandType.PAIR)),
    ),
    _define(
        "zany_joker", "Zany Joker", "+12 Mult if played hand contains a Three of a Kind", C, 4,
        _hand(ADD_MULT, 12, _contains(HandType.THREE_OF_A_KIND)),
    ),
    _define(
        "mad_joker", "Mad Joker", "+10 Mult if played hand contains a Two Pair", C, 4,
        _hand(ADD_MULT, 10, _contains(HandType.TWO_PAIR)),
    ),
    _define(
        "crazy_joker", "Crazy Joker", "+12 Mult if played hand contains a Straight", C, 4,
        _hand(ADD_MULT, 12, _contains(HandType.STRAIGHT)),
    ),
    _define(
        "droll_joker", "Droll Joker", "+10 Mult if played hand contains a Flush", C, 4,
        _hand(ADD_MULT, 10, _contains(HandType.FLUSH)),
    ),
    _define(
        "sly_joker", "Sly Joker", "+50 Chips if played hand contains a Pair", C, 3,
        _hand(ADD_CHIPS, 50, _contains(HandType.PAIR)),
    ),
    _define(
        "wily_joker", "Wily Joker", "+100 Chips if played hand contains a Three of a Kind", C, 4,
        _hand(ADD_CHIPS, 100, _contains(HandType.THREE_OF_A_KIND)),
    ),
    _define(
        "clever_joker", "Clever Joker", "+80 Chips if played hand contains a Two Pair", C, 4,
        _hand(ADD_CHIPS, 80, _contains(HandType.TWO_PAIR)),
    ),
    _define(
        "devious_joker", "Devious Joker", "+100 Chips if played hand contains a Straight", C, 4,
        _hand(ADD_CHIPS, 100, _contains(HandType.STRAIGHT)),
    ),
    _define(
        "crafty_joker", "Crafty Joker", "+80 Chips if played hand contains a Flush", C, 4,
        _hand(ADD_CHIPS, 80, _contains(HandType.FLUSH)),
    ),
    _define(
        "half_joker", "Half Joker", "+20 Mult if played hand contains 3 or fewer cards", C, 5,
        _hand(ADD_MULT, 20, Condition(max_played=3)),
    ),
    _define(
        "the_duo", "The Duo", "x2 Mult if played hand contains a Pair", R, 8,
        _hand(X_MULT, 2, _contains(HandType.PAIR)),
    ),
    _define(
        "the_trio", "The Trio", "x3 Mult if played hand contains a Three of a Kind", R, 8,
        _hand(X_MULT, 3, _contains(HandType.THREE_OF_A_KIND)),
    ),
    _define(
        "the_family", "The Family", "x4 Mult if played hand contains a Four of a Kind", R, 8,
        _hand(X_MULT, 4, _contains(HandType.FOUR_OF_A_KIND)),
    ),
    _define(
        "the_order", "The Order", "x3 Mult if played hand contains a Straight", R, 8,
        _hand(X_MULT, 3, _contains(HandType.STRAIGHT)),
    ),
    _define(
        "the_tribe", "The Tribe", "x2 Mult if played hand contains a Flush", R, 8,
        _hand(X_MULT, 2, _contains(HandType.FLUSH)),
    ),
    _define(
        "acrobat", "Acrobat", "x3 Mult on final hand of round", U, 6,
        _hand(X_MULT, 3, Condition(final_hand=True)),
    ),
    # Run-quantity jokers
    _define(
        "banner", "Banner", "+30 Chips for each remaining discard", C, 5,
        _hand(ADD_CHIPS, 30, scale=Scale.PER_DISCARD_LEFT),
    ),
    _define(
        "mystic_summit", "Mystic Summit", "+15 Mult when 0 discards remaining", C, 5,
        _hand(ADD_MULT, 15, Condition(discards_left=0)),
    ),
    _define(
        "bull", "Bull", "+2 Chips for each $1 you have", U, 6,
        _hand(ADD_CHIPS, 2, scale=Scale.PER_DOLLAR),
    ),
    _define(
        "bootstraps", "Bootstraps", "+2 Mult for every $5 you have", U, 7,
        _hand(ADD_MULT, 2, scale=Scale.PER_FIVE_DOLLARS),
    ),
    _define(
        "throwback", "Throwback", "x0.25 Mult for each Blind skipped this run", U, 6,
        _hand(X_MULT, 0.25, scale=Scale.PER_BLIND_SKIPPED),
    ),
    _define(
        "steel_joker", "Steel Joker", "x0.2 Mult for each Steel Card in your full deck", U, 7,
        _hand(X_MULT, 0.2, scale=Scale.PER_STEEL_CARD),
    ),
    _define(
        "blackboard", "Blackboard", "x3 Mult if all cards held in hand are Spades or Clubs", U, 6,
        _custom(HAND, "blackboard", 3),
    ),
    _define(
        "raised_fist", "Raised Fist", "Adds double the rank of lowest ranked card held in hand to Mult", C, 5,
        _custom(HAND, "raised_fist", 2),
    ),
    # Per scored card
    _define(
        "greedy_joker", "Greedy Joker", "Played cards with Diamond suit give +3 Mult when scored", C, 5,
        _scored(ADD_MULT, 3, suits=_suit(Suit.DIAMONDS)),
    ),
    _define(
        "lusty_joker", "Lusty Joker", "Played cards with Heart suit give +3 Mult when scored", C, 5,
        _scored(ADD_MULT, 3, suits=_suit(Suit.HEARTS)),
    ),
    _define(
        "wrathful_joker", "Wrathful Joker", "Played cards with Spade suit give +3 Mult when scored", C, 5,
        _scored(ADD_MULT, 3, suits=_suit(Suit.SPADES)),
    ),
    _define(
        "gluttonous_joker", "Gluttonous Joker", "Played cards with Club suit give +3 Mult when scored", C, 5,
        _scored(ADD_MULT, 3, suits=_suit(Suit.CLUBS)),
    ),
    _define(
        "arrowhead", "Arrowhead", "Played cards with Spade suit give +50 Chips when scored", U, 7,
        _scored(ADD_CHIPS, 50, suits=_suit(Suit.SPADES)),
    ),
    _define(
        "onyx_agate", "Onyx Agate", "Played cards with Club suit give +7 Mult when scored", U, 7,
        _scored(ADD_MULT, 7, suits=_suit(Suit.CLUBS)),
    ),
    _define(
        "rough_gem", "Rough Gem", "Played cards with Diamond suit earn $1 when scored", U, 7,
        _scored(EffectKind.MONEY, 1, suits=_suit(Suit.DIAMONDS)),
    ),
    _define(
        "fibonacci", "Fibonacci", "Each played Ace, 2, 3, 5, or 8 gives +8 Mult when scored", U, 8,
        _scored(ADD_MULT, 8, ranks=FIBONACCI_RANKS),
    ),
    _define(
        "odd_todd", "Odd Todd", "Played cards with odd rank give +31 Chips when scored", C, 4,
        _scored(ADD_CHIPS, 31, ranks=ODD_RANKS),
    ),
    _define(
        "even_steven", "Even Steven", "Played cards with even rank give +4 Mult when scored", C, 4,
        _scored(ADD_MULT, 4, ranks=EVEN_RANKS),
    ),
    _define(
        "scholar", "Scholar", "Played Aces give +20 Chips and +4 Mult when scored", C, 4,
        _scored(ADD_CHIPS, 20, ranks=_ranks(Rank.ACE)),
        _scored(ADD_MULT, 4, ranks=_ranks(Rank.ACE)),
    ),
    _define(
        "walkie_talkie", "Walkie Talkie", "Each played 10 or 4 gives +10 Chips and +4 Mult when scored", C, 4,
        _scored(ADD_CHIPS, 10, ranks=_ranks(Rank.TEN, Rank.FOUR)),
        _scored(ADD_MULT, 4, ranks=_ranks(Rank.TEN, Rank.FOUR)),
    ),
    _define(
        "scary_face", "Scary Face", "Played face cards give +30 Chips when scored", C, 4,
        _scored(ADD_CHIPS, 30, face=True),
    ),
    _define(
        "smiley_face", "Smiley Face", "Played face cards give +5 Mult when scored", C, 4,
        _scored(ADD_MULT, 5, face=True),
    ),
    _define(
        "golden_ticket", "Golden Ticket", "Played Gold cards earn $4 when scored", C, 5,
        _scored(EffectKind.MONEY, 4, enhancement=Enhancement.GOLD),
    ),
    _define(
        "photograph", "Photograph", "First played face card gives x2 Mult when scored", C, 5,
        _custom(SCORED, "photograph", 2),
    ),
    # Retriggers
    _define(
        "hack", "Hack", "Retrigger each played 2, 3, 4, or 5", U, 6,
        _scored(EffectKind.RETRIGGER, 1, ranks=_ranks(Rank.TWO, Rank.THREE, Rank.FOUR, Rank.FIVE)),
    ),
    _define(
        "dusk", "Dusk", "Retrigger all played cards in final hand of round", U, 5,
        Modifier(SCORED, EffectKind.RETRIGGER, 1, condition=Condition(final_hand=True)),
    ),
    _define(
        "sock_and_buskin", "Sock and Buskin", "Retrigger all played face cards", U, 6,
        _scored(EffectKind.RETRIGGER, 1, face=True),
    ),
    _define(
        "hanging_chad", "Hanging Chad", "Retrigger first played card used in scoring", C, 4,
        _custom(SCORED, "hanging_chad", 1),
    ),
    _define(
        "mime", "Mime", "Retrigger all card held in hand abilities", U, 5,
        _held(EffectKind.RETRIGGER, 1),
    ),
    # Held in hand
    _define(
        "baron", "Baron", "Each King held in hand gives x1.5 Mult", R, 8,
        _held(X_MULT, 1.5, ranks=_ranks(Rank.KING)),
    ),
    _define(
        "shoot_the_moon", "Shoot the Moon", "Each Queen held in hand gives +13 Mult", C, 5,
        _held(ADD_MULT, 13, ranks=_ranks(Rank.QUEEN)),
    ),
    # Growing jokers
    _define(
        "ice_cream", "Ice Cream", "+100 Chips, -5 Chips for every hand played", C, 5,
        _counter(HAND, ADD_CHIPS, 1, "chips"),
        _counter(HAND, EffectKind.GROW, -5, "chips"),
        chips=100,
    ),
    _define(
        "popcorn", "Popcorn", "+20 Mult, -4 Mult per round played", C, 5,
        _counter(HAND, ADD_MULT, 1, "mult"),
        _counter(ROUND_END, EffectKind.GROW, -4, "mult"),
        mult=20,
    ),
    _define(
        "ride_the_bus", "Ride the Bus",
        "+1 Mult per consecutive hand played without a scoring face card", C, 6,
        _counter(HAND, ADD_MULT, 1, "mult"),
        _custom(HAND, "ride_the_bus", 1, counter="mult"),
        mult=0,
    ),
    _define(
        "square_joker", "Square Joker", "Gains +4 Chips if played hand has exactly 4 cards", C, 4,
        _counter(HAND, ADD_CHIPS, 1, "chips"),
        _counter(HAND, EffectKind.GROW, 4, "chips", exact_played=4),
        chips=0,
    ),
    _define(
        "runner", "Runner", "Gains +15 Chips if played hand contains a Straight", C, 5,
        _counter(HAND, ADD_CHIPS, 1, "chips"),
        _counter(HAND, EffectKind.GROW, 15, "chips", contains=HandType.STRAIGHT),
        chips=0,
    ),
    _define(
        "green_joker", "Green Joker", "+1 Mult per hand played, -1 Mult per discarded card", C, 4,
        _counter(HAND, ADD_MULT, 1, "mult"),
        _counter(HAND, EffectKind.GROW, 1, "mult"),
        _counter(TriggerStage.DISCARD, EffectKind.GROW, -1, "mult"),
        mult=0,
    ),
    # Economy
    _define(
        "golden_joker", "Golden Joker", "Earn $4 at end of round", C, 6,
        Modifier(ROUND_END, EffectKind.MONEY, 4),
    ),
    _define(
        "egg", "Egg", "Gains $3 of sell value at end of round", C, 4,
        Modifier(ROUND_END, EffectKind.SELL_VALUE, 3),
    ),
    # Round setup
    _define("juggler", "Juggler", "+1 hand size", C, 4, _passive(EffectKind.HAND_SIZE, 1)),
    _define("drunkard", "Drunkard", "+1 discard each round", C, 4, _passive(EffectKind.DISCARDS, 1)),
    _define(
        "troubadour", "Troubadour", "+2 hand size, -1 hand each round", U, 6,
        _passive(EffectKind.HAND_SIZE, 2),
        _passive(EffectKind.HANDS, -1),
    ),
    # Legendary
    _define(
        "triboulet", "Triboulet", "Played Kings and Queens each give x2 Mult when scored", L, 20,
        _scored(X_MULT, 2, ranks=_ranks(Rank.KING, Rank.QUEEN)),
    ),
    _define(
        "chicot", "Chicot", "Disables effect of every Boss Blind", L, 20,
        _passive(EffectKind.DISABLE_BOSS, 1),
    ),
]

JOKERS: dict[str, JokerDefinition] = {d.id: d for d in _DEFINITIONS}

JOKERS["blueprint"] = JokerDefinition(
    id="blueprint",
    name="Blueprint",
    description="Copies ability of Joker to the right",
    rarity=JokerRarity.RARE,
    base_cost=10,
    copies_right=True,
)


def create_joker(joker_id: str, purchase_price: int | None = None) -> JokerInstance:
    """Create a joker instance by ID."""
    if joker_id not in JOKERS:
        raise ValueError(f"Unknown joker: {joker_id}")
    return JOKERS[joker_id].create_instance(purchase_price)


def get_all_joker_ids() -> list[str]:
    """Get list of all joker IDs."""
    return list(JOKERS.keys())


def get_jokers_by_rarity(rarity: JokerRarity) -> list[JokerDefinition]:
    """All catalog entries of a rarity, in catalog order."""
    return [d for d in JOKERS.values() if d.rarity == rarity]
