"""Tunable rule constants for a run and its shops."""

from dataclasses import dataclass, field, fields
from typing import Any, Self

from balatro_engine.jokers import JokerRarity


@dataclass(frozen=True)
class GameConfig:
    """Round and economy defaults for a new run."""

    hand_size: int = 8
    hands_per_round: int = 4
    discards_per_round: int = 3
    max_selection: int = 5
    joker_slots: int = 5
    consumable_slots: int = 2
    starting_money: int = 4
    final_ante: int = 8
    sell_fraction: float = 0.5

    # Interest: $1 per interest_per dollars held, at most interest_cap
    interest_per: int = 5
    interest_cap: int = 5
    money_per_remaining_hand: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)


@dataclass(frozen=True)
class ShopConfig:
    """Shop generation settings."""

    joker_offers: int = 2
    consumable_offers: int = 2
    voucher_offers: int = 1
    base_reroll_cost: int = 5
    reroll_cost_increase: int = 1

    rarity_weights: dict[JokerRarity, int] = field(
        default_factory=lambda: {
            JokerRarity.COMMON: 70,
            JokerRarity.UNCOMMON: 25,
            JokerRarity.RARE: 5,
            JokerRarity.LEGENDARY: 0,
        }
    )
    tarot_weight: int = 4
    planet_weight: int = 4

    consumable_price: int = 3
    voucher_price: int = 10
    minimum_price: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)


DEFAULT_GAME_CONFIG = GameConfig()
DEFAULT_SHOP_CONFIG = ShopConfig()
