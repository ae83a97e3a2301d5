"""Run state machine.

Drives a run through its phases:

    MAIN_MENU -> BLIND_SELECT -> ROUND -> SHOP -> BLIND_SELECT -> ...
                                       -> GAME_OVER | VICTORY

The engine owns the RunState. Scoring, shop and consumable code receive it
for a single call. Every command validates before it mutates, so a rejected
command leaves the run exactly as it was; rejections come back as an
ActionResult carrying the EngineError, never as a raised exception.
"""

import functools
import logging
import random
from dataclasses import dataclass, replace
from enum import Enum, auto

from balatro_engine import consumables, shop
from balatro_engine.blinds import (
    BlindType,
    DiscardLimit,
    ForcedDiscardCount,
    HandSizeReduction,
    MinimumCardsPlayed,
    choose_boss,
    make_blind,
    next_blind_type,
    score_target,
)
from balatro_engine.commands import (
    BuyOffer,
    Command,
    DiscardSelection,
    LeaveShop,
    MoveJoker,
    NewRun,
    PlaySelection,
    Quit,
    RerollShop,
    SelectBlind,
    SellConsumable,
    SellJoker,
    SkipBlind,
    SortHandBy,
    SortKey,
    ToggleCardSelection,
    UseConsumable,
)
from balatro_engine.config import DEFAULT_GAME_CONFIG, DEFAULT_SHOP_CONFIG, GameConfig, ShopConfig
from balatro_engine.errors import EngineError, IllegalTransition, InvalidSelection, NotFound
from balatro_engine.hand_evaluation import MAX_HAND_CARDS, contained_hands
from balatro_engine.jokers import all_effective_modifiers
from balatro_engine.models import Card, Enhancement, HandType, RunState, Seal, Suit, create_standard_deck
from balatro_engine.modifiers import EffectContext, EffectKind, TriggerStage, evaluate
from balatro_engine.scoring import ScoringBreakdown, TraceStep, calculate_score
from balatro_engine.shop import ShopOffer, VoucherState

logger = logging.getLogger(__name__)

# Paid for each Gold card still held when a blind is beaten
GOLD_CARD_MONEY = 3

_SUIT_ORDER = {suit: i for i, suit in enumerate(Suit)}


class GamePhase(Enum):
    """Current phase of the game."""

    MAIN_MENU = auto()
    BLIND_SELECT = auto()  # Choosing to play or skip blind
    ROUND = auto()  # Playing hands against a blind
    SHOP = auto()  # Shopping phase between blinds
    GAME_OVER = auto()  # Ran out of hands
    VICTORY = auto()  # Beat the final boss


_IN_RUN = (GamePhase.BLIND_SELECT, GamePhase.ROUND, GamePhase.SHOP)


@dataclass
class ActionResult:
    """Result of performing an action."""

    success: bool
    message: str
    error: EngineError | None = None
    score: int = 0
    breakdown: ScoringBreakdown | None = None
    blind_beaten: bool = False
    game_over: bool = False
    won: bool = False


@dataclass(frozen=True)
class CashOut:
    """Money paid out for a beaten blind."""

    reward: int
    remaining_hands: int
    interest: int
    jokers: int
    gold_cards: int

    @property
    def total(self) -> int:
        return self.reward + self.remaining_hands + self.interest + self.jokers + self.gold_cards


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of the run for rendering."""

    phase: GamePhase
    ante: int = 0
    blind_name: str | None = None
    blind_type: BlindType | None = None
    blind_target: int = 0
    round_score: int = 0
    money: int = 0
    hands_remaining: int = 0
    discards_remaining: int = 0
    hand: tuple[Card, ...] = ()
    selected: tuple[int, ...] = ()
    deck_size: int = 0
    jokers: tuple[str, ...] = ()
    consumables: tuple[str, ...] = ()
    offers: tuple[ShopOffer, ...] = ()
    reroll_cost: int | None = None
    trace: tuple[TraceStep, ...] = ()
    hand_levels: tuple[tuple[HandType, int], ...] = ()


def _command(method):
    """Turn EngineErrors raised by a command into a failed ActionResult."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs) -> ActionResult:
        try:
            return method(self, *args, **kwargs)
        except EngineError as exc:
            logger.info(f"Rejected {method.__name__}: {exc}")
            return ActionResult(False, str(exc), error=exc)

    return wrapper


class GameEngine:
    """Owns one run at a time and applies player commands to it."""

    def __init__(
        self,
        config: GameConfig = DEFAULT_GAME_CONFIG,
        shop_config: ShopConfig = DEFAULT_SHOP_CONFIG,
    ) -> None:
        self.config = config
        self.shop_config = shop_config
        self.phase = GamePhase.MAIN_MENU
        self.state: RunState | None = None
        self.last_cash_out: CashOut | None = None

    def dispatch(self, command: Command) -> ActionResult:
        """Apply one command to the run."""
        match command:
            case NewRun(seed=seed):
                return self.new_run(seed)
            case Quit():
                return self.quit()
            case SelectBlind():
                return self.select_blind()
            case SkipBlind():
                return self.skip_blind()
            case ToggleCardSelection(index=index):
                return self.toggle_card(index)
            case PlaySelection():
                return self.play_selection()
            case DiscardSelection():
                return self.discard_selection()
            case SortHandBy(key=key):
                return self.sort_hand(key)
            case BuyOffer(index=index):
                return self.buy_offer(index)
            case SellJoker(index=index):
                return self.sell_joker(index)
            case SellConsumable(index=index):
                return self.sell_consumable(index)
            case UseConsumable(index=index):
                return self.use_consumable(index)
            case MoveJoker(source=source, target=target):
                return self.move_joker(source, target)
            case RerollShop():
                return self.reroll_shop()
            case LeaveShop():
                return self.leave_shop()
        raise TypeError(f"Unknown command: {command!r}")

    # =========================================================================
    # Run lifecycle
    # =========================================================================

    @_command
    def new_run(self, seed: int | None = None) -> ActionResult:
        """Start a fresh run, discarding any run in progress."""
        config = self.config
        rng = random.Random(seed)
        state = RunState(
            joker_slots=config.joker_slots,
            consumable_slots=config.consumable_slots,
            sell_fraction=config.sell_fraction,
            money=config.starting_money,
            hand_size=config.hand_size,
            hands_remaining=config.hands_per_round,
            discards_remaining=config.discards_per_round,
            vouchers=VoucherState(),
            rng=rng,
        )
        state.deck = create_standard_deck()
        rng.shuffle(state.deck)
        state.boss_id = choose_boss(rng)
        state.blind = make_blind(state.ante, BlindType.SMALL, state.boss_id)

        self.state = state
        self.phase = GamePhase.BLIND_SELECT
        self.last_cash_out = None
        logger.info(f"New run started (seed={seed})")
        return ActionResult(True, "New run started")

    @_command
    def quit(self) -> ActionResult:
        """Abandon the run and go back to the main menu."""
        self.state = None
        self.phase = GamePhase.MAIN_MENU
        self.last_cash_out = None
        return ActionResult(True, "Returned to main menu")

    # =========================================================================
    # Blind selection
    # =========================================================================

    @_command
    def select_blind(self) -> ActionResult:
        state = self._require(GamePhase.BLIND_SELECT)
        self._start_round()
        self.phase = GamePhase.ROUND
        logger.info(f"Selected {state.blind.name} (ante {state.ante}, target {state.blind.target})")
        return ActionResult(True, f"Playing {state.blind.name}: score {state.blind.target} to win")

    @_command
    def skip_blind(self) -> ActionResult:
        state = self._require(GamePhase.BLIND_SELECT)
        skipped = state.blind
        if not skipped.can_skip:
            raise IllegalTransition(f"{skipped.name} cannot be skipped")

        state.blinds_skipped += 1
        self._advance_blind()
        logger.info(f"Skipped {skipped.name}")
        return ActionResult(True, f"Skipped {skipped.name}")

    def _start_round(self) -> None:
        """Reshuffle every card into the deck, set round limits and deal."""
        state = self.state
        config = self.config
        vouchers = state.vouchers or VoucherState()

        self._collect_cards()
        state.rng.shuffle(state.deck)

        passive = self._passive_totals()
        state.boss_disabled = self._boss_disabled_by(passive)
        if state.boss_disabled:
            # A disabled boss keeps its name but not its rule, including The Wall's target
            state.blind = replace(state.blind, target=score_target(state.ante, BlindType.BOSS))

        hand_size = config.hand_size + vouchers.bonus_hand_size + int(passive.get(EffectKind.HAND_SIZE, 0))
        hands = config.hands_per_round + vouchers.bonus_hands + int(passive.get(EffectKind.HANDS, 0))
        discards = (
            config.discards_per_round + vouchers.bonus_discards + int(passive.get(EffectKind.DISCARDS, 0))
        )

        match state.active_boss_rule:
            case HandSizeReduction() as rule:
                hand_size = rule.apply(hand_size)
            case DiscardLimit(discards=limit):
                discards = min(discards, limit)

        state.hand_size = max(1, hand_size)
        state.hands_remaining = max(1, hands)
        state.discards_remaining = max(0, discards)
        state.round_score = 0
        state.selected.clear()
        state.last_breakdown = None
        self._draw_to_hand_size()

    def _passive_totals(self) -> dict[EffectKind, float]:
        """Sum PASSIVE joker effects by kind."""
        ctx = EffectContext(state=self.state)
        totals: dict[EffectKind, float] = {}
        for modifier, owner in all_effective_modifiers(self.state.jokers):
            if not modifier.participates(TriggerStage.PASSIVE):
                continue
            magnitude = evaluate(modifier, ctx, owner)
            if magnitude is not None:
                totals[modifier.effect_kind] = totals.get(modifier.effect_kind, 0) + magnitude
        return totals

    def _boss_disabled_by(self, passive: dict[EffectKind, float]) -> bool:
        return self.state.blind.boss is not None and passive.get(EffectKind.DISABLE_BOSS, 0) > 0

    def _blind_target(self) -> int:
        """Target of the current blind, at the plain boss value if a joker disables the boss."""
        blind = self.state.blind
        if self._boss_disabled_by(self._passive_totals()):
            return score_target(blind.ante, BlindType.BOSS)
        return blind.target

    def _advance_blind(self) -> None:
        """Move to the next blind, starting a new ante after the boss."""
        state = self.state
        following = next_blind_type(state.blind.blind_type)
        if following is None:
            state.ante += 1
            state.boss_id = choose_boss(state.rng, state.boss_id)
            following = BlindType.SMALL
            logger.info(f"Advanced to ante {state.ante}")
        state.blind = make_blind(state.ante, following, state.boss_id)
        self.phase = GamePhase.BLIND_SELECT

    # =========================================================================
    # Round
    # =========================================================================

    @property
    def max_selection(self) -> int:
        return min(self.config.max_selection, MAX_HAND_CARDS)

    @_command
    def toggle_card(self, index: int) -> ActionResult:
        """Select or deselect the card at ``index`` in hand."""
        state = self._require(GamePhase.ROUND)
        if not 0 <= index < len(state.hand):
            raise NotFound(f"No card at position {index}")

        if index in state.selected:
            state.selected.remove(index)
            return ActionResult(True, f"Deselected {state.hand[index]}")
        if len(state.selected) >= self.max_selection:
            raise InvalidSelection(f"Can't select more than {self.max_selection} cards")
        state.selected.append(index)
        return ActionResult(True, f"Selected {state.hand[index]}")

    @_command
    def sort_hand(self, key: SortKey = SortKey.RANK) -> ActionResult:
        """Reorder the hand; the selection follows its cards."""
        state = self._require(GamePhase.ROUND)
        hand = state.hand
        match key:
            case SortKey.RANK:
                order = sorted(range(len(hand)), key=lambda i: (-hand[i].rank, _SUIT_ORDER[hand[i].suit]))
            case SortKey.SUIT:
                order = sorted(range(len(hand)), key=lambda i: (_SUIT_ORDER[hand[i].suit], -hand[i].rank))

        position = {old: new for new, old in enumerate(order)}
        state.hand = [hand[i] for i in order]
        state.selected = [position[i] for i in state.selected]
        return ActionResult(True, f"Sorted hand by {key.value}")

    def _selected_indices(self, state: RunState) -> list[int]:
        """Selected hand positions in hand order."""
        if not state.selected:
            raise InvalidSelection("No cards selected")
        if len(state.selected) > self.max_selection:
            raise InvalidSelection(f"Can't use more than {self.max_selection} cards")
        return sorted(state.selected)

    @_command
    def play_selection(self) -> ActionResult:
        """Play the selected cards.

        Hands remaining is decremented before scoring so effects asking
        for the final hand see zero.
        """
        state = self._require(GamePhase.ROUND)
        indices = self._selected_indices(state)
        if state.hands_remaining <= 0:
            raise InvalidSelection("No hands remaining")
        match state.active_boss_rule:
            case MinimumCardsPlayed(count=count) if len(indices) < count:
                raise InvalidSelection(f"{state.blind.name}: must play {count} cards")

        chosen = set(indices)
        played = [state.hand[i] for i in indices]
        held = [card for i, card in enumerate(state.hand) if i not in chosen]

        state.hands_remaining -= 1
        breakdown = calculate_score(
            played, state.jokers, state, held, rng_seed=state.rng.getrandbits(32)
        )
        state.money += breakdown.money_earned
        state.round_score += breakdown.final_score
        state.hands_played[breakdown.hand_type] += 1
        state.last_breakdown = breakdown

        ctx = EffectContext(
            state=state,
            hand_type=breakdown.hand_type,
            played_cards=played,
            scoring_cards=breakdown.scoring_cards,
            held_cards=held,
            contained=contained_hands(played),
        )
        self._apply_growth(TriggerStage.HAND, ctx)

        state.played_pile.extend(played)
        state.hand = held
        state.selected.clear()

        score = breakdown.final_score
        message = f"{breakdown.hand_type.display_name} for {score}"
        if state.round_score >= state.blind.target:
            return self._beat_blind(breakdown)

        match state.active_boss_rule:
            case ForcedDiscardCount(count=count):
                self._force_discard(count)
        self._draw_to_hand_size()

        if self._round_lost():
            return ActionResult(
                True,
                f"{message}. Game over ({state.round_score}/{state.blind.target})",
                score=score,
                breakdown=breakdown,
                game_over=True,
            )

        return ActionResult(True, message, score=score, breakdown=breakdown)

    @_command
    def discard_selection(self) -> ActionResult:
        """Discard the selected cards and draw replacements."""
        state = self._require(GamePhase.ROUND)
        indices = self._selected_indices(state)
        if state.discards_remaining <= 0:
            raise InvalidSelection("No discards remaining")

        chosen = set(indices)
        discarded = [state.hand[i] for i in indices]
        held = [card for i, card in enumerate(state.hand) if i not in chosen]

        state.discards_remaining -= 1
        ctx = EffectContext(state=state, played_cards=discarded, held_cards=held)
        money = 0
        created = []
        for position, card in enumerate(discarded):
            ctx.card = card
            ctx.card_index = position
            money += self._collect_money(TriggerStage.DISCARD, ctx)
            self._apply_growth(TriggerStage.DISCARD, ctx)
            if card.seal == Seal.PURPLE:
                tarot_id = state.rng.choice(consumables.get_all_tarot_ids())
                if consumables.add_consumable(state, tarot_id):
                    created.append(tarot_id)
        state.money += money

        state.discard_pile.extend(discarded)
        state.hand = held
        state.selected.clear()
        self._draw_to_hand_size()

        message = f"Discarded {len(discarded)} card(s)"
        if created:
            message += f", created {', '.join(consumables.TAROT_CARDS[t].name for t in created)}"
        if self._round_lost():
            return ActionResult(
                True,
                f"{message}. Game over ({state.round_score}/{state.blind.target})",
                game_over=True,
            )
        return ActionResult(True, message)

    def _round_lost(self) -> bool:
        """End the run if no further hand can be played this round."""
        state = self.state
        if state.hands_remaining > 0 and state.hand:
            return False
        self.phase = GamePhase.GAME_OVER
        logger.info(f"Game over at ante {state.ante}: {state.round_score}/{state.blind.target}")
        return True

    def _force_discard(self, count: int) -> None:
        """Discard random held cards (The Hook)."""
        state = self.state
        picked = set(state.rng.sample(range(len(state.hand)), min(count, len(state.hand))))
        state.discard_pile.extend(c for i, c in enumerate(state.hand) if i in picked)
        state.hand = [c for i, c in enumerate(state.hand) if i not in picked]

    def _beat_blind(self, breakdown: ScoringBreakdown) -> ActionResult:
        """Cash out the beaten blind and move on to the shop or victory."""
        state = self.state
        blind = state.blind
        held = list(state.hand)

        # Interest is earned on money held before this blind pays out
        interest = shop.calculate_interest(state.money, self.config, state.vouchers)
        ctx = EffectContext(state=state, hand_type=breakdown.hand_type, held_cards=held)
        cash_out = CashOut(
            reward=blind.reward,
            remaining_hands=state.hands_remaining * self.config.money_per_remaining_hand,
            interest=interest,
            jokers=self._collect_money(TriggerStage.ROUND_END, ctx),
            gold_cards=GOLD_CARD_MONEY * sum(1 for c in held if c.enhancement == Enhancement.GOLD),
        )
        self._apply_growth(TriggerStage.ROUND_END, ctx)

        planet_id = consumables.get_planet_for_hand_type(breakdown.hand_type)
        for card in held:
            if card.seal == Seal.BLUE:
                consumables.add_consumable(state, planet_id)

        state.money += cash_out.total
        self.last_cash_out = cash_out
        self._collect_cards()
        state.selected.clear()
        state.boss_disabled = False
        logger.info(f"Beat {blind.name} with {state.round_score}, earned ${cash_out.total}")

        score = breakdown.final_score
        if blind.blind_type == BlindType.BOSS and blind.ante >= self.config.final_ante:
            self.phase = GamePhase.VICTORY
            logger.info(f"Victory at ante {blind.ante}")
            return ActionResult(
                True,
                f"Beat {blind.name}! You win!",
                score=score,
                breakdown=breakdown,
                blind_beaten=True,
                won=True,
            )

        shop.enter_shop(state, self.shop_config)
        self.phase = GamePhase.SHOP
        return ActionResult(
            True,
            f"Beat {blind.name}! Earned ${cash_out.total}",
            score=score,
            breakdown=breakdown,
            blind_beaten=True,
        )

    # =========================================================================
    # Joker effects outside scoring
    # =========================================================================

    def _collect_money(self, stage: TriggerStage, ctx: EffectContext) -> int:
        """Money from jokers at a stage; Blueprint copies count."""
        total = 0
        for modifier, owner in all_effective_modifiers(self.state.jokers):
            if not modifier.participates(stage) or modifier.effect_kind != EffectKind.MONEY:
                continue
            magnitude = evaluate(modifier, ctx, owner)
            if magnitude is not None:
                total += int(magnitude)
        return total

    def _apply_growth(self, stage: TriggerStage, ctx: EffectContext) -> None:
        """Update joker counters and sell bonuses.

        Each joker grows from its own modifiers only; a Blueprint never
        grows the joker it copies.
        """
        for joker in self.state.jokers:
            for modifier in joker.definition.modifiers:
                if not modifier.participates(stage):
                    continue
                kind = modifier.effect_kind
                if kind not in (EffectKind.GROW, EffectKind.RESET, EffectKind.SELL_VALUE):
                    continue
                magnitude = evaluate(modifier, ctx, joker)
                if magnitude is None:
                    continue
                match kind:
                    case EffectKind.GROW:
                        current = joker.state.get(modifier.counter, 0)
                        joker.state[modifier.counter] = max(0, current + int(magnitude))
                    case EffectKind.RESET:
                        joker.state[modifier.counter] = 0
                    case EffectKind.SELL_VALUE:
                        joker.sell_bonus += int(magnitude)

    # =========================================================================
    # Shop and inventory
    # =========================================================================

    @_command
    def buy_offer(self, index: int) -> ActionResult:
        state = self._require(GamePhase.SHOP)
        offer = shop.buy_offer(state, index)
        return ActionResult(True, f"Bought {offer.name} for ${offer.price}")

    @_command
    def reroll_shop(self) -> ActionResult:
        state = self._require(GamePhase.SHOP)
        cost = state.shop.reroll_cost
        shop.reroll(state, self.shop_config)
        return ActionResult(True, f"Rerolled for ${cost}")

    @_command
    def leave_shop(self) -> ActionResult:
        state = self._require(GamePhase.SHOP)
        state.shop = None
        self._advance_blind()
        return ActionResult(True, f"Next up: {state.blind.name} (ante {state.ante})")

    @_command
    def sell_joker(self, index: int) -> ActionResult:
        state = self._require(*_IN_RUN)
        name = state.jokers[index].name if 0 <= index < len(state.jokers) else None
        value = shop.sell_joker(state, index, self.config.sell_fraction)
        return ActionResult(True, f"Sold {name} for ${value}")

    @_command
    def sell_consumable(self, index: int) -> ActionResult:
        state = self._require(*_IN_RUN)
        name = state.consumables[index].name if 0 <= index < len(state.consumables) else None
        value = shop.sell_consumable(state, index, self.config.sell_fraction)
        return ActionResult(True, f"Sold {name} for ${value}")

    @_command
    def use_consumable(self, index: int) -> ActionResult:
        state = self._require(*_IN_RUN)
        message = consumables.use_consumable(state, index)
        return ActionResult(True, message)

    @_command
    def move_joker(self, source: int, target: int) -> ActionResult:
        """Move a joker between slots (order affects scoring!)."""
        state = self._require(*_IN_RUN)
        count = len(state.jokers)
        if not 0 <= source < count:
            raise NotFound(f"No joker at slot {source}")
        if not 0 <= target < count:
            raise NotFound(f"No joker slot {target}")

        joker = state.jokers.pop(source)
        state.jokers.insert(target, joker)
        return ActionResult(True, f"Moved {joker.name} to slot {target}")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, *phases: GamePhase) -> RunState:
        """Return the run state if the engine is in one of ``phases``."""
        if self.phase not in phases or self.state is None:
            allowed = ", ".join(p.name for p in phases)
            raise IllegalTransition(f"Not allowed during {self.phase.name} (needs {allowed})")
        return self.state

    def _collect_cards(self) -> None:
        """Return every card to the deck."""
        state = self.state
        state.deck.extend(state.hand + state.discard_pile + state.played_pile)
        state.hand = []
        state.discard_pile = []
        state.played_pile = []

    def _draw_to_hand_size(self) -> None:
        state = self.state
        while len(state.hand) < state.hand_size and state.deck:
            state.hand.append(state.deck.pop())

    def snapshot(self) -> Snapshot:
        """Current state for rendering."""
        state = self.state
        if state is None:
            return Snapshot(phase=self.phase)

        blind = state.blind
        target = blind.target if blind else 0
        if blind and self.phase == GamePhase.BLIND_SELECT:
            target = self._blind_target()
        visit = state.shop
        breakdown = state.last_breakdown
        return Snapshot(
            phase=self.phase,
            ante=state.ante,
            blind_name=blind.name if blind else None,
            blind_type=blind.blind_type if blind else None,
            blind_target=target,
            round_score=state.round_score,
            money=state.money,
            hands_remaining=state.hands_remaining,
            discards_remaining=state.discards_remaining,
            hand=tuple(state.hand),
            selected=tuple(state.selected),
            deck_size=len(state.deck),
            jokers=tuple(j.name for j in state.jokers),
            consumables=tuple(c.name for c in state.consumables),
            offers=tuple(visit.offers) if visit else (),
            reroll_cost=visit.reroll_cost if visit else None,
            trace=tuple(breakdown.trace) if breakdown else (),
            hand_levels=tuple(state.hand_levels.items()),
        )
