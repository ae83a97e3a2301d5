"""Tests for the run state machine."""

from dataclasses import FrozenInstanceError, replace

import pytest

from balatro_engine.blinds import BlindType, make_blind
from balatro_engine.commands import (
    DiscardSelection,
    NewRun,
    PlaySelection,
    SelectBlind,
    SortHandBy,
    SortKey,
    ToggleCardSelection,
)
from balatro_engine.config import DEFAULT_GAME_CONFIG, GameConfig
from balatro_engine.consumables import ConsumableType, create_consumable
from balatro_engine.engine import GameEngine, GamePhase, Snapshot
from balatro_engine.errors import IllegalTransition, InsufficientFunds, InvalidSelection, NotFound
from balatro_engine.jokers import create_joker
from balatro_engine.models import Card, Enhancement, HandType, Seal
from balatro_engine.scoring import TraceStage

HAND = ["AS", "AH", "2C", "5D", "7S", "9H", "JC", "4D"]


def cards(card_strings: list[str]) -> list[Card]:
    """Helper to create cards from strings."""
    return [Card.from_string(s) for s in card_strings]


def start_round(
    seed: int = 1,
    config: GameConfig = DEFAULT_GAME_CONFIG,
    jokers: tuple[str, ...] = (),
    boss: str | None = None,
    hand: list[str] | None = HAND,
) -> GameEngine:
    """Engine in the ROUND phase, optionally with a known hand."""
    engine = GameEngine(config)
    engine.new_run(seed)
    engine.state.jokers = [create_joker(j) for j in jokers]
    if boss is not None:
        engine.state.blind = make_blind(1, BlindType.BOSS, boss)
    assert engine.select_blind().success
    if hand is not None:
        engine.state.hand = cards(hand)
    return engine


def select(engine: GameEngine, *indices: int) -> None:
    for i in indices:
        assert engine.toggle_card(i).success


def win_small_blind(engine: GameEngine):
    """Play the pair of aces against a tiny target."""
    engine.state.blind = replace(engine.state.blind, target=10)
    select(engine, 0, 1)
    return engine.play_selection()


class TestMainMenu:
    def test_starts_in_main_menu(self):
        engine = GameEngine()
        assert engine.phase == GamePhase.MAIN_MENU
        assert engine.snapshot() == Snapshot(phase=GamePhase.MAIN_MENU)

    def test_round_commands_rejected(self):
        result = GameEngine().play_selection()
        assert not result.success
        assert isinstance(result.error, IllegalTransition)


class TestNewRun:
    def test_initial_state(self):
        engine = GameEngine()
        assert engine.new_run(42).success
        state = engine.state
        assert engine.phase == GamePhase.BLIND_SELECT
        assert len(state.deck) == 52
        assert state.money == 4
        assert state.blind.blind_type == BlindType.SMALL
        assert state.blind.target == 300
        assert state.boss_id is not None

    def test_seed_is_deterministic(self):
        a, b = GameEngine(), GameEngine()
        a.new_run(5)
        b.new_run(5)
        assert a.state.deck == b.state.deck
        assert a.state.boss_id == b.state.boss_id

    def test_sell_fraction_from_config(self):
        engine = GameEngine(GameConfig(sell_fraction=1.0))
        engine.new_run(1)
        assert engine.state.sell_fraction == 1.0

    def test_dispatch_new_run(self):
        engine = GameEngine()
        assert engine.dispatch(NewRun(seed=3)).success
        assert engine.phase == GamePhase.BLIND_SELECT

    def test_new_run_replaces_old_run(self):
        engine = start_round()
        engine.new_run(2)
        assert engine.phase == GamePhase.BLIND_SELECT
        assert engine.state.hand == []

    def test_quit(self):
        engine = start_round()
        assert engine.quit().success
        assert engine.phase == GamePhase.MAIN_MENU
        assert engine.state is None


class TestBlindSelect:
    def test_select_blind_deals_hand(self):
        engine = start_round(hand=None)
        state = engine.state
        assert engine.phase == GamePhase.ROUND
        assert len(state.hand) == 8
        assert len(state.deck) == 44
        assert state.hands_remaining == 4
        assert state.discards_remaining == 3
        assert state.round_score == 0

    def test_skip_small_blind(self):
        engine = GameEngine()
        engine.new_run(1)
        assert engine.skip_blind().success
        assert engine.state.blind.blind_type == BlindType.BIG
        assert engine.state.blinds_skipped == 1
        assert engine.phase == GamePhase.BLIND_SELECT

    def test_cannot_skip_boss(self):
        engine = GameEngine()
        engine.new_run(1)
        engine.skip_blind()
        engine.skip_blind()
        result = engine.skip_blind()
        assert not result.success
        assert isinstance(result.error, IllegalTransition)
        assert engine.state.blind.blind_type == BlindType.BOSS
        assert engine.state.blinds_skipped == 2

    def test_cannot_select_during_round(self):
        engine = start_round()
        result = engine.dispatch(SelectBlind())
        assert isinstance(result.error, IllegalTransition)


class TestSelection:
    def test_toggle(self):
        engine = start_round()
        select(engine, 3)
        assert engine.state.selected == [3]
        engine.toggle_card(3)
        assert engine.state.selected == []

    def test_selection_limit(self):
        engine = start_round()
        select(engine, 0, 1, 2, 3, 4)
        result = engine.toggle_card(5)
        assert isinstance(result.error, InvalidSelection)
        assert len(engine.state.selected) == 5

    def test_bad_index(self):
        engine = start_round()
        result = engine.dispatch(ToggleCardSelection(8))
        assert isinstance(result.error, NotFound)

    def test_sort_by_rank_keeps_selection(self):
        engine = start_round(hand=["2S", "AS", "KH"])
        select(engine, 0)
        assert engine.dispatch(SortHandBy(SortKey.RANK)).success
        assert engine.state.hand == cards(["AS", "KH", "2S"])
        assert engine.state.selected_cards == cards(["2S"])

    def test_sort_by_suit(self):
        engine = start_round(hand=["2H", "AS", "KD", "3S"])
        engine.sort_hand(SortKey.SUIT)
        assert engine.state.hand == cards(["AS", "3S", "2H", "KD"])


class TestPlaying:
    def test_play_pair(self):
        engine = start_round()
        select(engine, 0, 1)
        result = engine.dispatch(PlaySelection())
        state = engine.state
        assert result.success
        assert result.score == 64
        assert result.breakdown.hand_type == HandType.PAIR
        assert state.round_score == 64
        assert state.hands_remaining == 3
        assert len(state.hand) == 8
        assert state.played_pile == cards(["AS", "AH"])
        assert state.selected == []
        assert state.hands_played[HandType.PAIR] == 1

    def test_card_count_is_constant(self):
        engine = start_round(hand=None)
        select(engine, 0, 1)
        engine.play_selection()
        select(engine, 0, 1, 2)
        engine.discard_selection()
        assert len(engine.state.full_deck) == 52

    def test_empty_selection_rejected(self):
        engine = start_round()
        before = engine.snapshot()
        result = engine.play_selection()
        assert isinstance(result.error, InvalidSelection)
        assert engine.snapshot() == before

    def test_too_many_cards_rejected(self):
        engine = start_round()
        engine.state.selected = [0, 1, 2, 3, 4, 5]
        result = engine.play_selection()
        assert isinstance(result.error, InvalidSelection)
        assert engine.state.hands_remaining == 4

    def test_final_hand_sees_zero_hands_left(self):
        engine = start_round(jokers=("acrobat",))
        engine.state.hands_remaining = 2
        select(engine, 0, 1)
        assert engine.play_selection().breakdown.final_score == 64
        engine.state.hand = cards(HAND)
        select(engine, 0, 1)
        assert engine.play_selection().breakdown.final_score == 192

    def test_game_over(self):
        engine = start_round()
        engine.state.blind = replace(engine.state.blind, target=10**9)
        for _ in range(4):
            select(engine, 0)
            result = engine.play_selection()
        assert result.success
        assert result.game_over
        assert engine.phase == GamePhase.GAME_OVER

    def test_no_play_after_game_over(self):
        engine = start_round()
        engine.state.blind = replace(engine.state.blind, target=10**9)
        for _ in range(4):
            select(engine, 0)
            engine.play_selection()
        assert isinstance(engine.toggle_card(0).error, IllegalTransition)
        assert isinstance(engine.play_selection().error, IllegalTransition)
        assert isinstance(engine.discard_selection().error, IllegalTransition)


class TestDiscarding:
    def test_discard(self):
        engine = start_round()
        select(engine, 2, 3)
        result = engine.dispatch(DiscardSelection())
        state = engine.state
        assert result.success
        assert state.discards_remaining == 2
        assert len(state.hand) == 8
        assert state.discard_pile == cards(["2C", "5D"])

    def test_no_discards_left(self):
        engine = start_round()
        engine.state.discards_remaining = 0
        select(engine, 0)
        result = engine.discard_selection()
        assert isinstance(result.error, InvalidSelection)
        assert engine.state.hand == cards(HAND)

    def test_discarding_last_cards_ends_run(self):
        engine = start_round(config=GameConfig(discards_per_round=30), hand=None)
        while engine.state.hand:
            select(engine, *range(min(5, len(engine.state.hand))))
            result = engine.discard_selection()
        assert result.game_over
        assert engine.phase == GamePhase.GAME_OVER
        assert engine.state.hands_remaining == 4
        assert isinstance(engine.play_selection().error, IllegalTransition)

    def test_purple_seal_creates_tarot(self):
        engine = start_round()
        engine.state.hand[2] = engine.state.hand[2].with_seal(Seal.PURPLE)
        select(engine, 2)
        engine.discard_selection()
        assert len(engine.state.consumables) == 1
        assert engine.state.consumables[0].consumable_type == ConsumableType.TAROT

    def test_green_joker_loses_mult_per_card(self):
        engine = start_round(jokers=("green_joker",))
        select(engine, 0, 1)
        engine.play_selection()
        green = engine.state.jokers[0]
        assert green.state["mult"] == 1
        select(engine, 0, 1)
        engine.discard_selection()
        assert green.state["mult"] == 0


class TestGrowth:
    def test_ice_cream_melts(self):
        engine = start_round(jokers=("ice_cream",))
        select(engine, 0, 1)
        result = engine.play_selection()
        assert result.score == (32 + 100) * 2
        assert engine.state.jokers[0].state["chips"] == 95

    def test_ride_the_bus(self):
        engine = start_round(jokers=("ride_the_bus",))
        select(engine, 0, 1)
        engine.play_selection()
        assert engine.state.jokers[0].state["mult"] == 1

    def test_blueprint_does_not_grow_copied_joker_twice(self):
        engine = start_round(jokers=("blueprint", "ice_cream"))
        select(engine, 0, 1)
        result = engine.play_selection()
        assert result.score == (32 + 200) * 2
        assert engine.state.jokers[1].state["chips"] == 95


class TestWinning:
    def test_blind_beaten(self):
        engine = start_round()
        result = win_small_blind(engine)
        state = engine.state
        assert result.blind_beaten
        assert engine.phase == GamePhase.SHOP
        # $4 + $3 reward + $3 for remaining hands
        assert state.money == 10
        assert engine.last_cash_out.total == 6
        assert len(state.shop.offers) == 5
        assert state.hand == []
        assert len(state.deck) == 52

    def test_interest_on_money_before_reward(self):
        engine = start_round()
        engine.state.money = 20
        win_small_blind(engine)
        assert engine.last_cash_out.interest == 4
        assert engine.state.money == 30

    def test_golden_joker(self):
        engine = start_round(jokers=("golden_joker",))
        win_small_blind(engine)
        assert engine.state.money == 14

    def test_gold_card_held(self):
        engine = start_round()
        engine.state.hand[2] = engine.state.hand[2].with_enhancement(Enhancement.GOLD)
        win_small_blind(engine)
        assert engine.last_cash_out.gold_cards == 3
        assert engine.state.money == 13

    def test_blue_seal_creates_planet(self):
        engine = start_round()
        engine.state.hand[2] = engine.state.hand[2].with_seal(Seal.BLUE)
        win_small_blind(engine)
        assert [c.card_id for c in engine.state.consumables] == ["mercury"]

    def test_egg_gains_sell_value(self):
        engine = start_round(jokers=("egg",))
        win_small_blind(engine)
        assert engine.state.jokers[0].sell_bonus == 3

    def test_popcorn_shrinks(self):
        engine = start_round(jokers=("popcorn",))
        win_small_blind(engine)
        assert engine.state.jokers[0].state["mult"] == 16

    def test_leave_shop_goes_to_next_blind(self):
        engine = start_round()
        win_small_blind(engine)
        assert engine.leave_shop().success
        assert engine.phase == GamePhase.BLIND_SELECT
        assert engine.state.blind.blind_type == BlindType.BIG
        assert engine.state.shop is None

    def test_leave_shop_after_boss_starts_new_ante(self):
        engine = start_round()
        win_small_blind(engine)
        old_boss = engine.state.boss_id
        engine.state.blind = make_blind(1, BlindType.BOSS, old_boss)
        engine.leave_shop()
        state = engine.state
        assert state.ante == 2
        assert state.blind.blind_type == BlindType.SMALL
        assert state.blind.target == 800
        assert state.boss_id != old_boss

    def test_victory_after_final_boss(self):
        engine = start_round(config=GameConfig(final_ante=1), boss="the_wall")
        result = win_small_blind(engine)
        assert result.won
        assert engine.phase == GamePhase.VICTORY
        assert isinstance(engine.toggle_card(0).error, IllegalTransition)


class TestBossRules:
    def test_psychic_requires_five_cards(self):
        engine = start_round(boss="the_psychic")
        select(engine, 0, 1)
        result = engine.play_selection()
        assert isinstance(result.error, InvalidSelection)
        assert engine.state.hands_remaining == 4

    def test_chicot_disables_boss(self):
        engine = start_round(jokers=("chicot",), boss="the_psychic")
        assert engine.state.boss_disabled
        select(engine, 0, 1)
        assert engine.play_selection().success

    def test_the_wall_target(self):
        assert start_round(boss="the_wall").state.blind.target == 1200

    def test_chicot_lowers_shown_target_before_selecting(self):
        engine = GameEngine()
        engine.new_run(1)
        engine.state.blind = make_blind(1, BlindType.BOSS, "the_wall")
        assert engine.snapshot().blind_target == 1200
        engine.state.jokers = [create_joker("chicot")]
        assert engine.snapshot().blind_target == 600

    def test_disabled_wall_uses_normal_target(self):
        engine = start_round(jokers=("chicot",), boss="the_wall")
        assert engine.state.blind.target == 600
        assert engine.state.blind.name == "The Wall"

    def test_the_water(self):
        assert start_round(boss="the_water").state.discards_remaining == 0

    def test_the_needle(self):
        engine = start_round(boss="the_needle", hand=None)
        assert engine.state.hand_size == 4
        assert len(engine.state.hand) == 4

    def test_the_manacle(self):
        assert start_round(boss="the_manacle").state.hand_size == 7

    def test_the_hook_discards_held_cards(self):
        engine = start_round(boss="the_hook")
        select(engine, 2)
        engine.play_selection()
        assert len(engine.state.discard_pile) == 2
        assert len(engine.state.hand) == 8

    def test_suit_boss_debuffs_played_cards(self):
        engine = start_round(boss="the_goad")
        select(engine, 0, 1)
        result = engine.play_selection()
        assert result.breakdown.debuffed_cards == cards(["AS"])
        assert result.score == 42


class TestRoundSetup:
    def test_juggler(self):
        assert start_round(jokers=("juggler",)).state.hand_size == 9

    def test_drunkard(self):
        assert start_round(jokers=("drunkard",)).state.discards_remaining == 4

    def test_troubadour(self):
        state = start_round(jokers=("troubadour",)).state
        assert state.hand_size == 10
        assert state.hands_remaining == 3

    def test_voucher_bonuses(self):
        engine = GameEngine()
        engine.new_run(1)
        engine.state.vouchers.apply_voucher("grabber")
        engine.state.vouchers.apply_voucher("paint_brush")
        engine.select_blind()
        assert engine.state.hands_remaining == 5
        assert engine.state.hand_size == 9


class TestInventory:
    def test_sell_joker_during_round(self):
        engine = start_round(jokers=("joker",))
        result = engine.sell_joker(0)
        assert result.success
        assert engine.state.money == 5
        assert engine.state.jokers == []

    def test_sell_bad_index(self):
        engine = start_round()
        assert isinstance(engine.sell_joker(0).error, NotFound)

    def test_move_joker(self):
        engine = start_round(jokers=("joker", "cavendish"))
        assert engine.move_joker(0, 1).success
        assert [j.id for j in engine.state.jokers] == ["cavendish", "joker"]

    def test_move_joker_bad_slot(self):
        engine = start_round(jokers=("joker",))
        assert isinstance(engine.move_joker(0, 1).error, NotFound)

    def test_use_tarot_on_selection(self):
        engine = start_round()
        engine.state.consumables.append(create_consumable("the_empress"))
        select(engine, 0)
        assert engine.use_consumable(0).success
        assert engine.state.hand[0].enhancement == Enhancement.MULT

    def test_sell_consumable(self):
        engine = start_round()
        engine.state.consumables.append(create_consumable("pluto"))
        assert engine.sell_consumable(0).success
        assert engine.state.money == 5

    def test_buy_outside_shop(self):
        engine = start_round()
        assert isinstance(engine.buy_offer(0).error, IllegalTransition)

    def test_buy_in_shop(self):
        engine = start_round()
        win_small_blind(engine)
        engine.state.money = 100
        offer = engine.state.shop.offers[0]
        assert engine.buy_offer(0).success
        assert engine.state.money == 100 - offer.price
        assert [j.id for j in engine.state.jokers] == [offer.item_id]

    def test_failed_buy_changes_nothing(self):
        engine = start_round()
        win_small_blind(engine)
        engine.state.money = 0
        before = engine.snapshot()
        result = engine.buy_offer(0)
        assert isinstance(result.error, InsufficientFunds)
        assert engine.snapshot() == before

    def test_reroll(self):
        engine = start_round()
        win_small_blind(engine)
        engine.state.money = 100
        assert engine.reroll_shop().success
        assert engine.state.money == 95
        assert engine.snapshot().reroll_cost == 6


class TestSnapshot:
    def test_round_snapshot(self):
        engine = start_round()
        snap = engine.snapshot()
        assert snap.phase == GamePhase.ROUND
        assert snap.hand == tuple(cards(HAND))
        assert snap.blind_target == 300
        assert snap.blind_name == "Small Blind"
        assert snap.trace == ()

    def test_snapshot_is_frozen(self):
        snap = start_round().snapshot()
        with pytest.raises(FrozenInstanceError):
            snap.money = 100

    def test_trace_after_play(self):
        engine = start_round()
        select(engine, 0, 1)
        engine.play_selection()
        trace = engine.snapshot().trace
        assert trace[0].stage == TraceStage.BASE
        assert trace[-1].stage == TraceStage.FINAL


class TestDispatch:
    def test_unknown_command(self):
        with pytest.raises(TypeError):
            GameEngine().dispatch(object())
