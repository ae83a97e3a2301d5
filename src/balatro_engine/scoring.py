"""Scoring pipeline.

Calculates the final score of a played hand by applying card and joker
effects in a fixed order, recording every change in a trace.

CRITICAL: Effect order matters! The full sequence is:
1. Base hand chips + base hand mult (from hand type and its level)
2. For each scoring card (left to right), once plus once per retrigger:
   a. Additive: rank chips (or +50 for Stone), Bonus, Foil, Mult,
      Holographic, Lucky, then joker SCORED_CARD adds in slot order
   b. Multiplicative: Glass, Polychrome, then joker SCORED_CARD x-mults
   c. Money: Gold seal, Lucky, money jokers
   Cards debuffed by the boss contribute nothing.
3. For each held card (left to right), once plus once per retrigger:
   joker HELD_CARD adds, then Steel and joker HELD_CARD x-mults
4. Jokers at the HAND stage in slot order: all adds, then all x-mults
5. Final score = round(max(0, chips) x max(0, mult))

Example of why order matters:
- Joker A: +10 mult, Joker B: x2 mult
- Adds apply before x-mults within a stage, so (base_mult + 10) x 2
  regardless of slot order. Across stages the order is fixed.

The pipeline only reads the run state. Money earned and counter growth
are reported back for the run machine to apply.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum, auto

from balatro_engine.blinds import NoScoreForSuit
from balatro_engine.hand_evaluation import contained_hands, evaluate_hand
from balatro_engine.jokers import JokerInstance, effective_modifiers
from balatro_engine.models import Card, Edition, Enhancement, HandType, RunState, Seal
from balatro_engine.modifiers import EffectContext, EffectKind, Modifier, TriggerStage, evaluate

logger = logging.getLogger(__name__)

LUCKY_MULT_CHANCE = 1 / 5
LUCKY_MONEY_CHANCE = 1 / 15


class TraceStage(Enum):
    """Pipeline stage a trace step belongs to."""

    BASE = auto()
    SCORED_CARD = auto()
    DEBUFFED = auto()
    HELD_CARD = auto()
    HAND = auto()
    FINAL = auto()


@dataclass(frozen=True)
class TraceStep:
    """One visible change to the running totals."""

    stage: TraceStage
    source: str  # Card or joker name
    kind: EffectKind | None
    amount: float
    chips_before: float
    mult_before: float
    chips_after: float
    mult_after: float
    card: Card | None = None
    money: int = 0


@dataclass
class ScoringBreakdown:
    """Detailed breakdown of how a score was calculated."""

    # Base values from hand type
    hand_type: HandType
    level: int
    base_chips: int
    base_mult: int

    played_cards: list[Card] = field(default_factory=list)
    scoring_cards: list[Card] = field(default_factory=list)
    debuffed_cards: list[Card] = field(default_factory=list)

    # Ordered steps, one per animation beat
    trace: list[TraceStep] = field(default_factory=list)

    # Economy effects
    money_earned: int = 0

    # Final values
    final_chips: float = 0
    final_mult: float = 0.0
    final_score: int = 0

    def steps_for(self, stage: TraceStage) -> list[TraceStep]:
        return [s for s in self.trace if s.stage == stage]


class _Tally:
    """Running chips and mult, writing a trace step for every change."""

    def __init__(self, breakdown: ScoringBreakdown) -> None:
        self.breakdown = breakdown
        self.chips: float = breakdown.base_chips
        self.mult: float = breakdown.base_mult

    def apply(
        self,
        stage: TraceStage,
        source: str,
        kind: EffectKind,
        amount: float,
        card: Card | None = None,
    ) -> None:
        chips_before, mult_before = self.chips, self.mult
        money = 0
        match kind:
            case EffectKind.ADD_CHIPS:
                self.chips += amount
            case EffectKind.ADD_MULT:
                self.mult += amount
            case EffectKind.X_MULT:
                self.mult *= amount
            case EffectKind.MONEY:
                money = int(amount)
                self.breakdown.money_earned += money
            case _:
                return
        self.breakdown.trace.append(
            TraceStep(
                stage=stage,
                source=source,
                kind=kind,
                amount=amount,
                chips_before=chips_before,
                mult_before=mult_before,
                chips_after=self.chips,
                mult_after=self.mult,
                card=card,
                money=money,
            )
        )


def _card_adds(card: Card, rng: random.Random) -> list[tuple[str, EffectKind, float]]:
    """Additive effects of a scored card itself."""
    effects: list[tuple[str, EffectKind, float]] = []

    if card.is_stone:
        effects.append(("Stone", EffectKind.ADD_CHIPS, 50))
    else:
        effects.append((str(card), EffectKind.ADD_CHIPS, card.rank.chip_value))

    match card.enhancement:
        case Enhancement.BONUS:
            effects.append(("Bonus", EffectKind.ADD_CHIPS, 30))
        case Enhancement.MULT:
            effects.append(("Mult", EffectKind.ADD_MULT, 4))
        case Enhancement.LUCKY:
            if rng.random() < LUCKY_MULT_CHANCE:
                effects.append(("Lucky", EffectKind.ADD_MULT, 20))

    match card.edition:
        case Edition.FOIL:
            effects.append(("Foil", EffectKind.ADD_CHIPS, 50))
        case Edition.HOLOGRAPHIC:
            effects.append(("Holographic", EffectKind.ADD_MULT, 10))

    return effects


def _card_x_mults(card: Card) -> list[tuple[str, EffectKind, float]]:
    effects: list[tuple[str, EffectKind, float]] = []
    if card.enhancement == Enhancement.GLASS:
        effects.append(("Glass", EffectKind.X_MULT, 2.0))
    if card.edition == Edition.POLYCHROME:
        effects.append(("Polychrome", EffectKind.X_MULT, 1.5))
    return effects


def _card_money(card: Card, rng: random.Random) -> list[tuple[str, EffectKind, float]]:
    effects: list[tuple[str, EffectKind, float]] = []
    if card.seal == Seal.GOLD:
        effects.append(("Gold Seal", EffectKind.MONEY, 3))
    if card.enhancement == Enhancement.LUCKY and rng.random() < LUCKY_MONEY_CHANCE:
        effects.append(("Lucky", EffectKind.MONEY, 20))
    return effects


def _triggered(
    modifiers: list[tuple[Modifier, JokerInstance, str]],
    stage: TriggerStage,
    ctx: EffectContext,
) -> list[tuple[str, EffectKind, float]]:
    """Evaluate every modifier participating in a stage, in slot order."""
    results = []
    for modifier, owner, source in modifiers:
        if not modifier.participates(stage):
            continue
        magnitude = evaluate(modifier, ctx, owner)
        if magnitude is not None:
            results.append((source, modifier.effect_kind, magnitude))
    return results


_Effect = tuple[str, EffectKind, float]


def _split(effects: list[_Effect]) -> tuple[list[_Effect], list[_Effect], list[_Effect], int]:
    """Separate additive, multiplicative and money effects; count retriggers."""
    adds = [e for e in effects if e[1] in (EffectKind.ADD_CHIPS, EffectKind.ADD_MULT)]
    x_mults = [e for e in effects if e[1] == EffectKind.X_MULT]
    money = [e for e in effects if e[1] == EffectKind.MONEY]
    retriggers = int(sum(e[2] for e in effects if e[1] == EffectKind.RETRIGGER))
    return adds, x_mults, money, retriggers


def is_debuffed(card: Card, game_state: RunState) -> bool:
    """Check if the active boss rule stops this card from scoring."""
    rule = game_state.active_boss_rule
    return isinstance(rule, NoScoreForSuit) and rule.debuffs(card)


def calculate_score(
    played_cards: list[Card],
    jokers: list[JokerInstance],
    game_state: RunState,
    cards_in_hand: list[Card] | None = None,
    rng_seed: int = 0,
) -> ScoringBreakdown:
    """Calculate the score for a played hand with card and joker effects.

    Args:
        played_cards: Cards the player chose to play (1-5 cards)
        jokers: Jokers in order (ORDER MATTERS!)
        game_state: Current run state, read only
        cards_in_hand: Cards remaining in hand (not played)
        rng_seed: Seed for random effects (Lucky cards)

    Returns:
        ScoringBreakdown with full calculation details
    """
    if not played_cards:
        raise ValueError("Must play at least one card")

    if cards_in_hand is None:
        cards_in_hand = []

    rng = random.Random(rng_seed)

    hand_result = evaluate_hand(played_cards)
    hand_type = hand_result.hand_type
    level = game_state.level_of(hand_type)

    breakdown = ScoringBreakdown(
        hand_type=hand_type,
        level=level,
        base_chips=hand_type.chips_at(level),
        base_mult=hand_type.mult_at(level),
        played_cards=list(played_cards),
        scoring_cards=hand_result.scoring_cards,
    )
    tally = _Tally(breakdown)
    breakdown.trace.append(
        TraceStep(
            stage=TraceStage.BASE,
            source=f"{hand_type.display_name} (lvl {level})",
            kind=None,
            amount=0,
            chips_before=0,
            mult_before=0,
            chips_after=tally.chips,
            mult_after=tally.mult,
        )
    )

    # Blueprint effects are credited to the Blueprint slot
    modifiers = [
        (modifier, owner, joker.name)
        for i, joker in enumerate(jokers)
        for modifier, owner in effective_modifiers(jokers, i)
    ]
    ctx = EffectContext(
        state=game_state,
        hand_type=hand_type,
        played_cards=list(played_cards),
        scoring_cards=hand_result.scoring_cards,
        held_cards=list(cards_in_hand),
        contained=contained_hands(played_cards),
    )

    # Scoring cards, left to right
    for index, card in enumerate(hand_result.scoring_cards):
        if is_debuffed(card, game_state):
            breakdown.debuffed_cards.append(card)
            breakdown.trace.append(
                TraceStep(
                    stage=TraceStage.DEBUFFED,
                    source=str(card),
                    kind=None,
                    amount=0,
                    chips_before=tally.chips,
                    mult_before=tally.mult,
                    chips_after=tally.chips,
                    mult_after=tally.mult,
                    card=card,
                )
            )
            continue

        ctx.card, ctx.card_index = card, index
        joker_effects = _triggered(modifiers, TriggerStage.SCORED_CARD, ctx)
        joker_adds, joker_x_mults, joker_money, retriggers = _split(joker_effects)
        if card.seal == Seal.RED:
            retriggers += 1

        for _ in range(1 + retriggers):
            for source, kind, amount in _card_adds(card, rng) + joker_adds:
                tally.apply(TraceStage.SCORED_CARD, source, kind, amount, card)
            for source, kind, amount in _card_x_mults(card) + joker_x_mults:
                tally.apply(TraceStage.SCORED_CARD, source, kind, amount, card)
            for source, kind, amount in _card_money(card, rng) + joker_money:
                tally.apply(TraceStage.SCORED_CARD, source, kind, amount, card)

    # Cards held in hand, left to right
    for index, card in enumerate(cards_in_hand):
        if is_debuffed(card, game_state):
            continue

        ctx.card, ctx.card_index = card, index
        joker_effects = _triggered(modifiers, TriggerStage.HELD_CARD, ctx)
        joker_adds, joker_x_mults, _, retriggers = _split(joker_effects)
        steel = [("Steel", EffectKind.X_MULT, 1.5)] if card.enhancement == Enhancement.STEEL else []
        if not (joker_adds or joker_x_mults or steel):
            continue
        if card.seal == Seal.RED:
            retriggers += 1

        for _ in range(1 + retriggers):
            for source, kind, amount in joker_adds:
                tally.apply(TraceStage.HELD_CARD, source, kind, amount, card)
            for source, kind, amount in steel + joker_x_mults:
                tally.apply(TraceStage.HELD_CARD, source, kind, amount, card)

    # Whole-hand joker effects
    ctx.card, ctx.card_index = None, None
    hand_adds, hand_x_mults, hand_money, _ = _split(_triggered(modifiers, TriggerStage.HAND, ctx))
    for source, kind, amount in hand_adds + hand_x_mults + hand_money:
        tally.apply(TraceStage.HAND, source, kind, amount)

    breakdown.final_chips = tally.chips
    breakdown.final_mult = tally.mult
    breakdown.final_score = max(0, math.floor(max(0, tally.chips) * max(0, tally.mult) + 0.5))
    breakdown.trace.append(
        TraceStep(
            stage=TraceStage.FINAL,
            source="Score",
            kind=None,
            amount=breakdown.final_score,
            chips_before=tally.chips,
            mult_before=tally.mult,
            chips_after=tally.chips,
            mult_after=tally.mult,
        )
    )

    logger.debug(
        f"{hand_type.display_name} lvl {level}: "
        f"{breakdown.final_chips:g} x {breakdown.final_mult:g} = {breakdown.final_score}"
    )
    return breakdown


def quick_score(
    played_cards: list[Card],
    jokers: list[JokerInstance] | None = None,
    game_state: RunState | None = None,
    rng_seed: int = 0,
) -> int:
    """Quick score calculation returning just the final score.

    Convenience function for when you don't need the full breakdown.
    """
    if jokers is None:
        jokers = []
    if game_state is None:
        game_state = RunState()

    breakdown = calculate_score(played_cards, jokers, game_state, rng_seed=rng_seed)
    return breakdown.final_score
