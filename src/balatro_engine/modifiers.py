"""Effect vocabulary shared by jokers, cards and the scoring pipeline.

A Modifier is a read-only description: which stage it fires at, what it
does, under which condition and how its magnitude scales. Everything that
changes over a run (counters, accumulated sell value) lives on the owning
instance and is only read here.

Stage participation is always asked for through ``Modifier.participates``
so new effect kinds can be added to the catalog without the pipeline
having to know about them.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

from balatro_engine.models import Card, Enhancement, HandType, Rank, RunState, Suit


class TriggerStage(Enum):
    """Fixed evaluation points at which modifiers are queried."""

    SCORED_CARD = auto()  # Each scoring card, left to right
    HELD_CARD = auto()  # Each card left in hand
    HAND = auto()  # Whole hand, after per-card stages
    DISCARD = auto()  # Each discarded card
    ROUND_END = auto()  # After a blind is beaten
    PASSIVE = auto()  # Static round setup


class EffectKind(Enum):
    """What a triggered modifier does with its magnitude."""

    ADD_CHIPS = auto()
    ADD_MULT = auto()
    X_MULT = auto()
    MONEY = auto()
    RETRIGGER = auto()
    HAND_SIZE = auto()
    HANDS = auto()
    DISCARDS = auto()
    DISABLE_BOSS = auto()
    SELL_VALUE = auto()  # Adds to the owner's sell bonus
    GROW = auto()  # Adds to the owner's counter
    RESET = auto()  # Sets the owner's counter back to zero
    CUSTOM = auto()  # Bespoke logic, see CUSTOM_EFFECTS


class Scale(Enum):
    """Run quantity a magnitude is multiplied by."""

    FLAT = auto()
    PER_DISCARD_LEFT = auto()
    PER_DOLLAR = auto()
    PER_FIVE_DOLLARS = auto()
    PER_BLIND_SKIPPED = auto()
    PER_STEEL_CARD = auto()
    COUNTER = auto()


class ModifierOwner(Protocol):
    """Anything carrying per-instance counters (jokers)."""

    state: dict


@dataclass(frozen=True)
class Condition:
    """Filters a modifier must pass to trigger.

    Card filters apply to the card being scored, held or discarded.
    Hand filters apply to the play as a whole. None means "don't care".
    """

    # Card filters
    suits: frozenset[Suit] | None = None
    ranks: frozenset[Rank] | None = None
    face: bool | None = None
    enhancement: Enhancement | None = None

    # Hand filters
    contains: HandType | None = None
    max_played: int | None = None
    exact_played: int | None = None
    discards_left: int | None = None
    final_hand: bool | None = None

    def matches_card(self, card: Card | None) -> bool:
        if self.suits is None and self.ranks is None and self.face is None and self.enhancement is None:
            return True
        if card is None:
            return False

        if self.suits is not None and not any(card.has_suit(s) for s in self.suits):
            return False
        if self.ranks is not None and (card.is_stone or card.rank not in self.ranks):
            return False
        if self.face is not None and card.is_face != self.face:
            return False
        if self.enhancement is not None and card.enhancement != self.enhancement:
            return False
        return True

    def matches_hand(self, ctx: "EffectContext") -> bool:
        if self.contains is not None and self.contains not in ctx.contained:
            return False
        if self.max_played is not None and len(ctx.played_cards) > self.max_played:
            return False
        if self.exact_played is not None and len(ctx.played_cards) != self.exact_played:
            return False
        if self.discards_left is not None and ctx.state.discards_remaining != self.discards_left:
            return False
        if self.final_hand is not None and (ctx.state.hands_remaining == 0) != self.final_hand:
            return False
        return True


ALWAYS = Condition()


@dataclass(frozen=True)
class Modifier:
    """Read-only description of one effect."""

    stage: TriggerStage
    kind: EffectKind
    amount: float = 0
    condition: Condition = ALWAYS
    scale: Scale = Scale.FLAT
    counter: str | None = None  # Owner state key for COUNTER, GROW and RESET
    custom_id: str | None = None

    def participates(self, stage: TriggerStage) -> bool:
        """True if this modifier should be queried at the given stage."""
        return self.stage == stage

    @property
    def effect_kind(self) -> EffectKind:
        """Kind the magnitude is applied as (resolves CUSTOM)."""
        if self.kind == EffectKind.CUSTOM:
            return CUSTOM_EFFECTS[self.custom_id].applies_as
        return self.kind


@dataclass
class EffectContext:
    """Everything a modifier may look at while being evaluated.

    Built by the caller for one stage; ``card`` and ``card_index`` are set
    while iterating per-card stages.
    """

    state: RunState
    hand_type: HandType | None = None
    played_cards: list[Card] = field(default_factory=list)
    scoring_cards: list[Card] = field(default_factory=list)
    held_cards: list[Card] = field(default_factory=list)
    contained: frozenset[HandType] = frozenset()
    card: Card | None = None
    card_index: int | None = None


def scale_factor(modifier: Modifier, ctx: EffectContext, owner: ModifierOwner | None) -> int:
    """Run quantity the modifier's amount is multiplied by."""
    state = ctx.state
    match modifier.scale:
        case Scale.FLAT:
            return 1
        case Scale.PER_DISCARD_LEFT:
            return state.discards_remaining
        case Scale.PER_DOLLAR:
            return max(0, state.money)
        case Scale.PER_FIVE_DOLLARS:
            return max(0, state.money) // 5
        case Scale.PER_BLIND_SKIPPED:
            return state.blinds_skipped
        case Scale.PER_STEEL_CARD:
            return sum(1 for c in state.full_deck if c.enhancement == Enhancement.STEEL)
        case Scale.COUNTER:
            if owner is None or modifier.counter is None:
                return 0
            return owner.state.get(modifier.counter, 0)
    return 1


def evaluate(
    modifier: Modifier,
    ctx: EffectContext,
    owner: ModifierOwner | None = None,
) -> float | None:
    """Evaluate a modifier in context.

    Returns:
        The triggered magnitude, or None if the modifier does not fire.
        For X_MULT the magnitude is the factor to multiply by.
    """
    if modifier.kind == EffectKind.CUSTOM:
        return CUSTOM_EFFECTS[modifier.custom_id].compute(modifier, ctx, owner)

    if not modifier.condition.matches_hand(ctx):
        return None
    if modifier.stage in (TriggerStage.SCORED_CARD, TriggerStage.HELD_CARD, TriggerStage.DISCARD):
        if not modifier.condition.matches_card(ctx.card):
            return None

    n = scale_factor(modifier, ctx, owner)

    if modifier.kind == EffectKind.X_MULT:
        if modifier.scale == Scale.FLAT:
            return modifier.amount
        factor = 1 + modifier.amount * n
        return factor if factor != 1 else None

    if modifier.kind == EffectKind.RESET:
        return 0

    magnitude = modifier.amount * n
    if magnitude == 0:
        return None
    return magnitude


# =============================================================================
# Custom effects
# =============================================================================


@dataclass(frozen=True)
class CustomEffect:
    """Bespoke effect logic keyed by custom_id."""

    applies_as: EffectKind
    compute: Callable[[Modifier, EffectContext, ModifierOwner | None], float | None]


def _blackboard(modifier: Modifier, ctx: EffectContext, _owner) -> float | None:
    """x3 Mult if every held card is a Spade or Club."""
    dark = all(
        c.has_suit(Suit.SPADES) or c.has_suit(Suit.CLUBS) for c in ctx.held_cards
    )
    return modifier.amount if dark else None


def _raised_fist(modifier: Modifier, ctx: EffectContext, _owner) -> float | None:
    """Adds double the lowest held rank to Mult."""
    ranked = [c for c in ctx.held_cards if not c.is_stone]
    if not ranked:
        return None
    lowest = min(ranked, key=lambda c: c.rank)
    return modifier.amount * lowest.rank.chip_value


def _photograph(modifier: Modifier, ctx: EffectContext, _owner) -> float | None:
    """x2 Mult for the first scored face card."""
    if ctx.card is None or ctx.card_index is None or not ctx.card.is_face:
        return None
    first_face = next((i for i, c in enumerate(ctx.scoring_cards) if c.is_face), None)
    return modifier.amount if first_face == ctx.card_index else None


def _hanging_chad(modifier: Modifier, ctx: EffectContext, _owner) -> float | None:
    """Retrigger the first scored card."""
    return modifier.amount if ctx.card_index == 0 else None


def _ride_the_bus(modifier: Modifier, ctx: EffectContext, owner) -> float | None:
    """+1 to the counter per hand without a scoring face card, reset otherwise."""
    current = owner.state.get(modifier.counter, 0) if owner is not None else 0
    if any(c.is_face for c in ctx.scoring_cards):
        return -current if current else None
    return modifier.amount


CUSTOM_EFFECTS: dict[str, CustomEffect] = {
    "blackboard": CustomEffect(EffectKind.X_MULT, _blackboard),
    "raised_fist": CustomEffect(EffectKind.ADD_MULT, _raised_fist),
    "photograph": CustomEffect(EffectKind.X_MULT, _photograph),
    "hanging_chad": CustomEffect(EffectKind.RETRIGGER, _hanging_chad),
    "ride_the_bus": CustomEffect(EffectKind.GROW, _ride_the_bus),
}
