"""Tests for shop and voucher system."""

import random

import pytest

from balatro_engine.config import DEFAULT_GAME_CONFIG, ShopConfig
from balatro_engine.consumables import create_consumable
from balatro_engine.errors import IllegalTransition, InsufficientFunds, InventoryFull, NotFound
from balatro_engine.jokers import JOKERS, JokerRarity, create_joker
from balatro_engine.models import RunState
from balatro_engine.shop import (
    BASE_VOUCHERS,
    UPGRADED_VOUCHERS,
    VOUCHERS,
    OfferKind,
    ShopOffer,
    ShopVisit,
    VoucherState,
    VoucherTier,
    buy_offer,
    calculate_interest,
    calculate_price,
    enter_shop,
    generate_offers,
    redeem_voucher,
    reroll,
    sell_consumable,
    sell_joker,
)


def seeded_state(seed: int = 1, **kwargs) -> RunState:
    return RunState(rng=random.Random(seed), vouchers=VoucherState(), **kwargs)


def shop_with(*offers: ShopOffer, **kwargs) -> RunState:
    """Run state with an open shop holding exactly these offers."""
    state = seeded_state(**kwargs)
    state.shop = ShopVisit(offers=list(offers))
    return state


class TestVoucherDefinitions:
    """Test voucher definitions."""

    def test_voucher_counts(self):
        assert len(BASE_VOUCHERS) == 11
        assert len(UPGRADED_VOUCHERS) == 10
        assert len(VOUCHERS) == 21

    def test_voucher_has_required_fields(self):
        for voucher_id, voucher in VOUCHERS.items():
            assert voucher.id == voucher_id
            assert voucher.name
            assert voucher.description

    def test_upgraded_vouchers_name_their_base(self):
        for voucher in UPGRADED_VOUCHERS.values():
            assert voucher.tier == VoucherTier.UPGRADED
            assert voucher.upgrades_from in BASE_VOUCHERS


class TestVoucherState:
    def test_upgrade_needs_base(self):
        vouchers = VoucherState()
        assert vouchers.is_available("clearance_sale")
        assert not vouchers.is_available("liquidation")
        vouchers.apply_voucher("clearance_sale")
        assert not vouchers.is_available("clearance_sale")
        assert vouchers.is_available("liquidation")

    def test_discounts(self):
        vouchers = VoucherState()
        vouchers.apply_voucher("clearance_sale")
        assert vouchers.discount_multiplier == 0.75
        vouchers.apply_voucher("liquidation")
        assert vouchers.discount_multiplier == 0.5

    def test_stacking_bonuses(self):
        vouchers = VoucherState()
        vouchers.apply_voucher("grabber")
        vouchers.apply_voucher("nacho_tong")
        assert vouchers.bonus_hands == 2

    def test_apply_twice_is_noop(self):
        vouchers = VoucherState()
        vouchers.apply_voucher("wasteful")
        vouchers.apply_voucher("wasteful")
        assert vouchers.bonus_discards == 1

    def test_redeem_adjusts_slots(self):
        state = seeded_state()
        redeem_voucher(state, "crystal_ball")
        assert state.consumable_slots == 3
        redeem_voucher(state, "blank")
        redeem_voucher(state, "antimatter")
        assert state.joker_slots == 6


class TestPricing:
    def test_full_price(self):
        assert calculate_price(6, VoucherState(), ShopConfig()) == 6

    def test_discount_floors(self):
        vouchers = VoucherState()
        vouchers.apply_voucher("clearance_sale")
        assert calculate_price(5, vouchers, ShopConfig()) == 3

    def test_minimum_price(self):
        vouchers = VoucherState()
        vouchers.apply_voucher("clearance_sale")
        vouchers.apply_voucher("liquidation")
        assert calculate_price(1, vouchers, ShopConfig()) == 1

    def test_interest(self):
        assert calculate_interest(23) == 4
        assert calculate_interest(100) == 5
        assert calculate_interest(-5) == 0

    def test_seed_money_raises_cap(self):
        vouchers = VoucherState()
        vouchers.apply_voucher("seed_money")
        assert calculate_interest(100, DEFAULT_GAME_CONFIG, vouchers) == 10


class TestOfferGeneration:
    def test_offer_layout(self):
        offers = generate_offers(seeded_state())
        kinds = [o.kind for o in offers]
        assert kinds[:2] == [OfferKind.JOKER, OfferKind.JOKER]
        assert all(k in (OfferKind.TAROT, OfferKind.PLANET) for k in kinds[2:4])
        assert kinds[4] == OfferKind.VOUCHER
        assert len(offers) == 5

    def test_seeded_offers_are_reproducible(self):
        assert generate_offers(seeded_state(7)) == generate_offers(seeded_state(7))

    def test_owned_jokers_excluded(self):
        for seed in range(30):
            state = seeded_state(seed)
            state.jokers = [create_joker(j) for j in ("joker", "jolly_joker", "greedy_joker")]
            joker_ids = {o.item_id for o in generate_offers(state) if o.kind == OfferKind.JOKER}
            assert not joker_ids & {"joker", "jolly_joker", "greedy_joker"}

    def test_no_duplicate_jokers(self):
        config = ShopConfig(joker_offers=5)
        for seed in range(30):
            ids = [o.item_id for o in generate_offers(seeded_state(seed), config) if o.kind == OfferKind.JOKER]
            assert len(ids) == len(set(ids))

    def test_legendary_never_offered(self):
        for seed in range(50):
            for offer in generate_offers(seeded_state(seed)):
                if offer.kind == OfferKind.JOKER:
                    assert JOKERS[offer.item_id].rarity != JokerRarity.LEGENDARY

    def test_offers_priced_at_generation(self):
        state = seeded_state()
        state.vouchers.apply_voucher("clearance_sale")
        for offer in generate_offers(state):
            if offer.kind == OfferKind.JOKER:
                assert offer.price == max(1, int(JOKERS[offer.item_id].base_cost * 0.75))

    def test_overstock_adds_joker_offer(self):
        state = seeded_state()
        state.vouchers.apply_voucher("overstock")
        jokers = [o for o in generate_offers(state) if o.kind == OfferKind.JOKER]
        assert len(jokers) == 3

    def test_enter_shop_resets_reroll_cost(self):
        state = seeded_state()
        state.vouchers.apply_voucher("reroll_surplus")
        visit = enter_shop(state)
        assert state.shop is visit
        assert visit.reroll_cost == 3
        assert visit.rerolls == 0


class TestBuying:
    def test_buy_joker(self):
        state = shop_with(ShopOffer(OfferKind.JOKER, "joker", 2), money=5)
        offer = buy_offer(state, 0)
        assert offer.item_id == "joker"
        assert state.money == 3
        assert [j.id for j in state.jokers] == ["joker"]
        assert state.jokers[0].purchase_price == 2
        assert state.shop.offers == []

    def test_buy_consumable(self):
        state = shop_with(ShopOffer(OfferKind.PLANET, "pluto", 3), money=3)
        buy_offer(state, 0)
        assert state.money == 0
        assert state.consumables[0].card_id == "pluto"

    def test_buy_voucher(self):
        state = shop_with(ShopOffer(OfferKind.VOUCHER, "grabber", 10), money=10)
        buy_offer(state, 0)
        assert state.vouchers.bonus_hands == 1
        assert "grabber" in state.vouchers.redeemed

    def test_insufficient_funds_changes_nothing(self):
        state = shop_with(ShopOffer(OfferKind.JOKER, "joker", 2), money=1)
        with pytest.raises(InsufficientFunds):
            buy_offer(state, 0)
        assert state.money == 1
        assert state.jokers == []
        assert len(state.shop.offers) == 1

    def test_full_joker_slots(self):
        state = shop_with(ShopOffer(OfferKind.JOKER, "joker", 2), money=10, joker_slots=1)
        state.jokers.append(create_joker("cavendish"))
        with pytest.raises(InventoryFull):
            buy_offer(state, 0)
        assert state.money == 10
        assert len(state.shop.offers) == 1

    def test_full_consumable_slots(self):
        state = shop_with(ShopOffer(OfferKind.TAROT, "the_hermit", 3), money=10, consumable_slots=0)
        with pytest.raises(InventoryFull):
            buy_offer(state, 0)

    def test_bad_index(self):
        state = shop_with(money=10)
        with pytest.raises(NotFound):
            buy_offer(state, 0)

    def test_shop_closed(self):
        with pytest.raises(IllegalTransition):
            buy_offer(seeded_state(), 0)


class TestSelling:
    def test_sell_joker(self):
        state = seeded_state(money=0)
        state.jokers.append(create_joker("cavendish", purchase_price=4))
        assert sell_joker(state, 0) == 2
        assert state.money == 2
        assert state.jokers == []

    def test_sell_bad_index(self):
        state = seeded_state()
        with pytest.raises(NotFound):
            sell_joker(state, 0)

    def test_sell_consumable(self):
        state = seeded_state(money=0)
        state.consumables.append(create_consumable("pluto", purchase_price=3))
        assert sell_consumable(state, 0) == 1
        assert state.consumables == []

    def test_sell_then_buy_is_not_profitable(self):
        state = shop_with(ShopOffer(OfferKind.JOKER, "joker", 5), money=5)
        buy_offer(state, 0)
        sell_joker(state, 0)
        assert state.money < 5


class TestReroll:
    def test_reroll_cost_increases(self):
        state = seeded_state(money=20)
        enter_shop(state)
        reroll(state)
        assert state.money == 15
        assert state.shop.reroll_cost == 6
        reroll(state)
        assert state.money == 9
        assert state.shop.rerolls == 2

    def test_reroll_insufficient_funds(self):
        state = seeded_state(money=2)
        visit = enter_shop(state)
        offers = list(visit.offers)
        with pytest.raises(InsufficientFunds):
            reroll(state)
        assert state.money == 2
        assert visit.offers == offers

    def test_reroll_keeps_vouchers(self):
        state = seeded_state(money=20)
        visit = enter_shop(state)
        vouchers = [o for o in visit.offers if o.kind == OfferKind.VOUCHER]
        reroll(state)
        assert [o for o in state.shop.offers if o.kind == OfferKind.VOUCHER] == vouchers

    def test_reroll_needs_open_shop(self):
        with pytest.raises(IllegalTransition):
            reroll(seeded_state(money=20))
