"""Tests for blinds, antes and boss rules."""

import random

from balatro_engine.blinds import (
    BASE_ANTE_CHIPS,
    BOSS_BLINDS,
    BlindType,
    DiscardLimit,
    ExtraTarget,
    HandSizeReduction,
    NoScoreForSuit,
    blind_reward,
    choose_boss,
    get_all_boss_blind_ids,
    make_blind,
    next_blind_type,
    score_target,
)
from balatro_engine.models import Card, Enhancement, Suit


class TestTargets:
    def test_ante_one_targets(self):
        assert score_target(1, BlindType.SMALL) == 300
        assert score_target(1, BlindType.BIG) == 450
        assert score_target(1, BlindType.BOSS) == 600

    def test_the_wall_is_larger(self):
        assert score_target(1, BlindType.BOSS, BOSS_BLINDS["the_wall"]) == 1200

    def test_final_ante_boss(self):
        assert score_target(8, BlindType.BOSS) == 100000

    def test_endless_antes_keep_growing(self):
        assert score_target(9, BlindType.SMALL) > BASE_ANTE_CHIPS[8]
        assert score_target(10, BlindType.SMALL) > score_target(9, BlindType.SMALL)

    def test_rewards(self):
        assert blind_reward(BlindType.SMALL) == 3
        assert blind_reward(BlindType.BIG) == 4
        assert blind_reward(BlindType.BOSS) == 5


class TestBlinds:
    def test_make_small_blind(self):
        blind = make_blind(2, BlindType.SMALL, "the_hook")
        assert blind.name == "Small Blind"
        assert blind.boss is None
        assert blind.target == 800
        assert blind.can_skip

    def test_make_boss_blind(self):
        blind = make_blind(1, BlindType.BOSS, "the_hook")
        assert blind.name == "The Hook"
        assert blind.reward == 5
        assert not blind.can_skip

    def test_blind_sequence(self):
        assert next_blind_type(BlindType.SMALL) == BlindType.BIG
        assert next_blind_type(BlindType.BIG) == BlindType.BOSS
        assert next_blind_type(BlindType.BOSS) is None


class TestBossRules:
    def test_catalog(self):
        assert len(get_all_boss_blind_ids()) == 10
        for boss_id, boss in BOSS_BLINDS.items():
            assert boss.id == boss_id
            assert boss.description

    def test_needle_halves_hand(self):
        assert BOSS_BLINDS["the_needle"].rule.apply(8) == 4

    def test_manacle_removes_one(self):
        assert BOSS_BLINDS["the_manacle"].rule.apply(8) == 7

    def test_hand_size_never_below_one(self):
        assert HandSizeReduction(amount=5).apply(3) == 1

    def test_water_has_no_discards(self):
        assert BOSS_BLINDS["the_water"].rule == DiscardLimit(0)

    def test_wall_multiplier(self):
        assert BOSS_BLINDS["the_wall"].rule == ExtraTarget(4.0)

    def test_suit_debuff(self):
        rule = NoScoreForSuit(Suit.CLUBS)
        assert rule.debuffs(Card.from_string("2C"))
        assert not rule.debuffs(Card.from_string("2S"))

    def test_wild_and_stone_not_debuffed(self):
        rule = NoScoreForSuit(Suit.CLUBS)
        assert not rule.debuffs(Card.from_string("2C").with_enhancement(Enhancement.WILD))
        assert not rule.debuffs(Card.from_string("2C").with_enhancement(Enhancement.STONE))

    def test_choose_boss_avoids_repeat(self):
        rng = random.Random(5)
        for _ in range(50):
            assert choose_boss(rng, previous="the_hook") != "the_hook"

    def test_choose_boss_is_seeded(self):
        assert choose_boss(random.Random(9)) == choose_boss(random.Random(9))
