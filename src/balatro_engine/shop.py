"""Shop and Voucher system.

The shop appears after a beaten blind and offers:
- 2 random Jokers, drawn by rarity weight, never one already owned
- 2 random consumables (Tarot or Planet)
- 1 Voucher

Vouchers provide permanent upgrades that affect the rest of the run.
All randomness comes from the run's own generator so a seeded run sees
the same shops every time.

Every operation validates first and raises an EngineError before
touching money or inventory.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum

from balatro_engine.config import DEFAULT_GAME_CONFIG, DEFAULT_SHOP_CONFIG, GameConfig, ShopConfig
from balatro_engine.consumables import (
    PLANET_CARDS,
    TAROT_CARDS,
    create_consumable,
    get_available_planet_ids,
)
from balatro_engine.errors import IllegalTransition, InsufficientFunds, InventoryFull, NotFound
from balatro_engine.jokers import JOKERS, JokerRarity
from balatro_engine.models import RunState

logger = logging.getLogger(__name__)


# =============================================================================
# Voucher System
# =============================================================================


class VoucherTier(Enum):
    """Voucher tier - base or upgraded."""

    BASE = "base"
    UPGRADED = "upgraded"


@dataclass(frozen=True)
class Voucher:
    """A voucher that provides a permanent upgrade."""

    id: str
    name: str
    description: str
    tier: VoucherTier = VoucherTier.BASE
    # ID of the base voucher this upgrades (None for base vouchers)
    upgrades_from: str | None = None


BASE_VOUCHERS: dict[str, Voucher] = {
    v.id: v
    for v in (
        Voucher("overstock", "Overstock", "+1 Joker slot in shop"),
        Voucher("clearance_sale", "Clearance Sale", "All cards in shop are 25% off"),
        Voucher("reroll_surplus", "Reroll Surplus", "Rerolls cost $2 less"),
        Voucher("crystal_ball", "Crystal Ball", "+1 consumable slot"),
        Voucher("grabber", "Grabber", "Permanently gain +1 hand per round"),
        Voucher("wasteful", "Wasteful", "Permanently gain +1 discard per round"),
        Voucher("tarot_merchant", "Tarot Merchant", "Tarot cards appear 2X more frequently in the shop"),
        Voucher("planet_merchant", "Planet Merchant", "Planet cards appear 2X more frequently in the shop"),
        Voucher("seed_money", "Seed Money", "Raise interest cap to $10 per round"),
        Voucher("paint_brush", "Paint Brush", "+1 hand size"),
        Voucher("blank", "Blank", "Does nothing"),
    )
}

UPGRADED_VOUCHERS: dict[str, Voucher] = {
    v.id: v
    for v in (
        Voucher("overstock_plus", "Overstock Plus", "+1 Joker slot in shop (4 total)",
                VoucherTier.UPGRADED, "overstock"),
        Voucher("liquidation", "Liquidation", "All cards in shop are 50% off",
                VoucherTier.UPGRADED, "clearance_sale"),
        Voucher("reroll_glut", "Reroll Glut", "Rerolls cost $4 less total",
                VoucherTier.UPGRADED, "reroll_surplus"),
        Voucher("nacho_tong", "Nacho Tong", "Permanently gain +1 hand per round (+2 total)",
                VoucherTier.UPGRADED, "grabber"),
        Voucher("recyclomancy", "Recyclomancy", "Permanently gain +1 discard per round (+2 total)",
                VoucherTier.UPGRADED, "wasteful"),
        Voucher("tarot_tycoon", "Tarot Tycoon", "Tarot cards appear 4X more frequently in the shop",
                VoucherTier.UPGRADED, "tarot_merchant"),
        Voucher("planet_tycoon", "Planet Tycoon", "Planet cards appear 4X more frequently in the shop",
                VoucherTier.UPGRADED, "planet_merchant"),
        Voucher("money_tree", "Money Tree", "Raise interest cap to $20 per round",
                VoucherTier.UPGRADED, "seed_money"),
        Voucher("palette", "Palette", "+1 hand size (+2 total)",
                VoucherTier.UPGRADED, "paint_brush"),
        Voucher("antimatter", "Antimatter", "+1 Joker slot",
                VoucherTier.UPGRADED, "blank"),
    )
}

# Combined dictionary of all vouchers
VOUCHERS: dict[str, Voucher] = {**BASE_VOUCHERS, **UPGRADED_VOUCHERS}


@dataclass
class VoucherState:
    """Permanent upgrades redeemed this run."""

    redeemed: list[str] = field(default_factory=list)

    extra_joker_offers: int = 0
    # Discount multiplier (1.0 = no discount, 0.75 = 25% off, 0.5 = 50% off)
    discount_multiplier: float = 1.0
    reroll_discount: int = 0

    bonus_hands: int = 0
    bonus_discards: int = 0
    bonus_hand_size: int = 0
    bonus_joker_slots: int = 0
    bonus_consumable_slots: int = 0

    interest_cap: int | None = None  # None keeps the configured cap

    tarot_weight_mult: float = 1.0
    planet_weight_mult: float = 1.0

    def apply_voucher(self, voucher_id: str) -> None:
        """Apply a voucher's effects."""
        if voucher_id in self.redeemed:
            return  # Already applied

        self.redeemed.append(voucher_id)

        match voucher_id:
            # Shop slots
            case "overstock" | "overstock_plus":
                self.extra_joker_offers += 1

            # Discounts
            case "clearance_sale":
                self.discount_multiplier = 0.75
            case "liquidation":
                self.discount_multiplier = 0.50

            # Reroll
            case "reroll_surplus" | "reroll_glut":
                self.reroll_discount += 2

            # Hands/discards
            case "grabber" | "nacho_tong":
                self.bonus_hands += 1
            case "wasteful" | "recyclomancy":
                self.bonus_discards += 1

            # Card frequency
            case "tarot_merchant":
                self.tarot_weight_mult = 2.0
            case "tarot_tycoon":
                self.tarot_weight_mult = 4.0
            case "planet_merchant":
                self.planet_weight_mult = 2.0
            case "planet_tycoon":
                self.planet_weight_mult = 4.0

            # Interest
            case "seed_money":
                self.interest_cap = 10
            case "money_tree":
                self.interest_cap = 20

            # Slots
            case "paint_brush" | "palette":
                self.bonus_hand_size += 1
            case "crystal_ball":
                self.bonus_consumable_slots += 1
            case "antimatter":
                self.bonus_joker_slots += 1

    def is_available(self, voucher_id: str) -> bool:
        """Base vouchers once; upgraded ones only after their base."""
        if voucher_id in self.redeemed:
            return False
        voucher = VOUCHERS[voucher_id]
        if voucher.tier == VoucherTier.UPGRADED:
            return voucher.upgrades_from in self.redeemed
        return True


def redeem_voucher(state: RunState, voucher_id: str) -> None:
    """Apply a voucher and the slot changes it grants."""
    vouchers = _vouchers(state)
    joker_slots, consumable_slots = vouchers.bonus_joker_slots, vouchers.bonus_consumable_slots
    vouchers.apply_voucher(voucher_id)
    state.joker_slots += vouchers.bonus_joker_slots - joker_slots
    state.consumable_slots += vouchers.bonus_consumable_slots - consumable_slots


def _vouchers(state: RunState) -> VoucherState:
    if state.vouchers is None:
        state.vouchers = VoucherState()
    return state.vouchers


# =============================================================================
# Shop contents
# =============================================================================


class OfferKind(Enum):
    """Types of items that can appear in the shop."""

    JOKER = "joker"
    TAROT = "tarot"
    PLANET = "planet"
    VOUCHER = "voucher"


@dataclass(frozen=True)
class ShopOffer:
    """An item for sale, priced when the shop was stocked."""

    kind: OfferKind
    item_id: str
    price: int

    @property
    def name(self) -> str:
        match self.kind:
            case OfferKind.JOKER:
                return JOKERS[self.item_id].name
            case OfferKind.TAROT:
                return TAROT_CARDS[self.item_id].name
            case OfferKind.PLANET:
                return PLANET_CARDS[self.item_id].name
            case OfferKind.VOUCHER:
                return VOUCHERS[self.item_id].name

    def __str__(self) -> str:
        return f"{self.name} (${self.price})"


@dataclass
class ShopVisit:
    """Current state of the shop for one visit."""

    offers: list[ShopOffer] = field(default_factory=list)
    # Current reroll cost (resets each shop visit)
    reroll_cost: int = 5
    rerolls: int = 0


def calculate_price(base_cost: int, vouchers: VoucherState | None, config: ShopConfig) -> int:
    """Calculate the final price of an item: discounted, floored, at least the minimum."""
    discount = vouchers.discount_multiplier if vouchers else 1.0
    return max(config.minimum_price, math.floor(base_cost * discount))


def calculate_interest(
    money: int,
    config: GameConfig = DEFAULT_GAME_CONFIG,
    vouchers: VoucherState | None = None,
) -> int:
    """Calculate interest earned at end of round."""
    cap = config.interest_cap
    if vouchers is not None and vouchers.interest_cap is not None:
        cap = vouchers.interest_cap
    return min(max(0, money) // config.interest_per, cap)


def _draw_joker(
    config: ShopConfig,
    rng: random.Random,
    excluded: set[str],
) -> str | None:
    """Pick a joker ID by rarity weight, skipping excluded IDs."""
    pools = {
        rarity: [d.id for d in JOKERS.values() if d.rarity == rarity and d.id not in excluded]
        for rarity in JokerRarity
    }
    rarities = [r for r in JokerRarity if pools[r] and config.rarity_weights.get(r, 0) > 0]
    if not rarities:
        return None
    rarity = rng.choices(rarities, weights=[config.rarity_weights[r] for r in rarities])[0]
    return rng.choice(pools[rarity])


def _draw_consumable(
    state: RunState,
    config: ShopConfig,
    rng: random.Random,
) -> tuple[OfferKind, str]:
    vouchers = _vouchers(state)
    weights = [
        config.tarot_weight * vouchers.tarot_weight_mult,
        config.planet_weight * vouchers.planet_weight_mult,
    ]
    kind = rng.choices([OfferKind.TAROT, OfferKind.PLANET], weights=weights)[0]
    if kind == OfferKind.TAROT:
        return kind, rng.choice(list(TAROT_CARDS))
    return kind, rng.choice(get_available_planet_ids(state))


def generate_offers(
    state: RunState,
    config: ShopConfig = DEFAULT_SHOP_CONFIG,
    include_vouchers: bool = True,
) -> list[ShopOffer]:
    """Stock the shop from the run's random generator.

    Jokers already owned or already on offer are excluded. Jokers come
    first, then consumables, then vouchers.
    """
    rng = state.rng
    vouchers = _vouchers(state)
    offers: list[ShopOffer] = []

    excluded = {j.id for j in state.jokers}
    for _ in range(config.joker_offers + vouchers.extra_joker_offers):
        joker_id = _draw_joker(config, rng, excluded)
        if joker_id is None:
            break
        excluded.add(joker_id)
        price = calculate_price(JOKERS[joker_id].base_cost, vouchers, config)
        offers.append(ShopOffer(OfferKind.JOKER, joker_id, price))

    for _ in range(config.consumable_offers):
        kind, card_id = _draw_consumable(state, config, rng)
        price = calculate_price(config.consumable_price, vouchers, config)
        offers.append(ShopOffer(kind, card_id, price))

    if include_vouchers:
        available = [v for v in VOUCHERS if vouchers.is_available(v)]
        for voucher_id in rng.sample(available, min(config.voucher_offers, len(available))):
            offers.append(ShopOffer(OfferKind.VOUCHER, voucher_id, config.voucher_price))

    return offers


def base_reroll_cost(state: RunState, config: ShopConfig = DEFAULT_SHOP_CONFIG) -> int:
    return max(0, config.base_reroll_cost - _vouchers(state).reroll_discount)


def enter_shop(state: RunState, config: ShopConfig = DEFAULT_SHOP_CONFIG) -> ShopVisit:
    """Open a fresh shop; the reroll cost starts over."""
    state.shop = ShopVisit(
        offers=generate_offers(state, config),
        reroll_cost=base_reroll_cost(state, config),
    )
    return state.shop


def _visit(state: RunState) -> ShopVisit:
    if state.shop is None:
        raise IllegalTransition("Shop is not open")
    return state.shop


def buy_offer(state: RunState, index: int) -> ShopOffer:
    """Buy the offer at ``index``.

    Raises:
        NotFound: index out of range
        InsufficientFunds: price above current money
        InventoryFull: no free joker or consumable slot
    """
    visit = _visit(state)
    if not 0 <= index < len(visit.offers):
        raise NotFound(f"No offer at slot {index}")

    offer = visit.offers[index]
    if offer.price > state.money:
        raise InsufficientFunds(f"{offer.name} costs ${offer.price}, you have ${state.money}")

    match offer.kind:
        case OfferKind.JOKER:
            if len(state.jokers) >= state.joker_slots:
                raise InventoryFull("No free joker slot")
            state.jokers.append(JOKERS[offer.item_id].create_instance(offer.price))
        case OfferKind.TAROT | OfferKind.PLANET:
            if len(state.consumables) >= state.consumable_slots:
                raise InventoryFull("No free consumable slot")
            state.consumables.append(create_consumable(offer.item_id, offer.price))
        case OfferKind.VOUCHER:
            redeem_voucher(state, offer.item_id)

    state.money -= offer.price
    visit.offers.pop(index)
    logger.info(f"Bought {offer.name} for ${offer.price}")
    return offer


def sell_joker(state: RunState, index: int, fraction: float = 0.5) -> int:
    """Sell the joker in slot ``index``. Returns the money received."""
    if not 0 <= index < len(state.jokers):
        raise NotFound(f"No joker at slot {index}")

    joker = state.jokers.pop(index)
    value = joker.sell_value(fraction)
    state.money += value
    logger.info(f"Sold {joker.name} for ${value}")
    return value


def sell_consumable(state: RunState, index: int, fraction: float = 0.5) -> int:
    """Sell the consumable in slot ``index``. Returns the money received."""
    if not 0 <= index < len(state.consumables):
        raise NotFound(f"No consumable at slot {index}")

    consumable = state.consumables.pop(index)
    value = consumable.sell_value(fraction)
    state.money += value
    logger.info(f"Sold {consumable.name} for ${value}")
    return value


def reroll(state: RunState, config: ShopConfig = DEFAULT_SHOP_CONFIG) -> ShopVisit:
    """Pay the reroll cost and restock jokers and consumables.

    Voucher offers stay. Each reroll in a visit costs more than the last.
    """
    visit = _visit(state)
    cost = visit.reroll_cost
    if cost > state.money:
        raise InsufficientFunds(f"Reroll costs ${cost}, you have ${state.money}")

    state.money -= cost
    kept = [o for o in visit.offers if o.kind == OfferKind.VOUCHER]
    visit.offers = generate_offers(state, config, include_vouchers=False) + kept
    visit.reroll_cost += config.reroll_cost_increase
    visit.rerolls += 1
    logger.debug(f"Rerolled shop for ${cost}, next reroll ${visit.reroll_cost}")
    return visit
