"""Consumable cards: Tarot and Planet cards.

Consumables are single-use cards:
- Planet cards: Level up specific poker hand types
- Tarot cards: Enhance/convert playing cards, grant money, create other cards

Using one validates everything first (selection size, free slots, a
target for The Fool) and only then touches the run state, so a rejected
use leaves the run unchanged.
"""

import logging
import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from balatro_engine.errors import InvalidSelection, InventoryFull, NotFound
from balatro_engine.jokers import JOKERS, JokerRarity
from balatro_engine.models import Enhancement, HandType, RunState, Suit

logger = logging.getLogger(__name__)


class ConsumableType(Enum):
    """Types of consumable cards."""

    TAROT = "tarot"
    PLANET = "planet"


# =============================================================================
# Planet Card Definitions (12 cards)
# =============================================================================


@dataclass(frozen=True)
class PlanetCard:
    """A Planet card definition."""

    id: str
    name: str
    hand_type: HandType
    secret: bool = False  # Only offered once its hand has been played

    @property
    def description(self) -> str:
        ht = self.hand_type
        return (
            f"Level up {ht.display_name}: "
            f"+{ht.level_mult} Mult and +{ht.level_chips} Chips"
        )


PLANET_CARDS: dict[str, PlanetCard] = {
    p.id: p
    for p in (
        PlanetCard("pluto", "Pluto", HandType.HIGH_CARD),
        PlanetCard("mercury", "Mercury", HandType.PAIR),
        PlanetCard("uranus", "Uranus", HandType.TWO_PAIR),
        PlanetCard("venus", "Venus", HandType.THREE_OF_A_KIND),
        PlanetCard("saturn", "Saturn", HandType.STRAIGHT),
        PlanetCard("jupiter", "Jupiter", HandType.FLUSH),
        PlanetCard("earth", "Earth", HandType.FULL_HOUSE),
        PlanetCard("mars", "Mars", HandType.FOUR_OF_A_KIND),
        PlanetCard("neptune", "Neptune", HandType.STRAIGHT_FLUSH),
        PlanetCard("planet_x", "Planet X", HandType.FIVE_OF_A_KIND, secret=True),
        PlanetCard("ceres", "Ceres", HandType.FLUSH_HOUSE, secret=True),
        PlanetCard("eris", "Eris", HandType.FLUSH_FIVE, secret=True),
    )
}

HAND_TYPE_TO_PLANET: dict[HandType, str] = {p.hand_type: p.id for p in PLANET_CARDS.values()}


# =============================================================================
# Tarot Card Definitions
# =============================================================================


@dataclass(frozen=True)
class TarotCard:
    """A Tarot card definition."""

    id: str
    name: str
    description: str
    # Number of hand cards that must be selected (0/0 = no selection needed)
    min_select: int = 0
    max_select: int = 0


TAROT_CARDS: dict[str, TarotCard] = {
    t.id: t
    for t in (
        TarotCard("the_fool", "The Fool", "Creates the last Tarot or Planet card used during this run"),
        TarotCard("the_magician", "The Magician", "Enhances up to 2 selected cards to Lucky Cards", 1, 2),
        TarotCard("the_high_priestess", "The High Priestess", "Creates up to 2 random Planet cards"),
        TarotCard("the_empress", "The Empress", "Enhances up to 2 selected cards to Mult Cards", 1, 2),
        TarotCard("the_emperor", "The Emperor", "Creates up to 2 random Tarot cards"),
        TarotCard("the_hierophant", "The Hierophant", "Enhances up to 2 selected cards to Bonus Cards", 1, 2),
        TarotCard("the_lovers", "The Lovers", "Enhances 1 selected card into a Wild Card", 1, 1),
        TarotCard("the_chariot", "The Chariot", "Enhances 1 selected card into a Steel Card", 1, 1),
        TarotCard("justice", "Justice", "Enhances 1 selected card into a Glass Card", 1, 1),
        TarotCard("the_hermit", "The Hermit", "Doubles money (Max of $20)"),
        TarotCard("strength", "Strength", "Increases rank of up to 2 selected cards by 1", 1, 2),
        TarotCard("death", "Death", "Select 2 cards, convert the left card into the right card", 2, 2),
        TarotCard("temperance", "Temperance", "Gives the total sell value of all current Jokers (Max of $50)"),
        TarotCard("the_devil", "The Devil", "Enhances 1 selected card into a Gold Card", 1, 1),
        TarotCard("the_tower", "The Tower", "Enhances 1 selected card into a Stone Card", 1, 1),
        TarotCard("the_star", "The Star", "Converts up to 3 selected cards to Diamonds", 1, 3),
        TarotCard("the_moon", "The Moon", "Converts up to 3 selected cards to Clubs", 1, 3),
        TarotCard("the_sun", "The Sun", "Converts up to 3 selected cards to Hearts", 1, 3),
        TarotCard("the_world", "The World", "Converts up to 3 selected cards to Spades", 1, 3),
        TarotCard("judgement", "Judgement", "Creates a random Joker card"),
    )
}


# =============================================================================
# Consumable Instance
# =============================================================================


@dataclass
class ConsumableInstance:
    """An owned consumable card."""

    consumable_type: ConsumableType
    card_id: str
    purchase_price: int = 3

    @property
    def definition(self) -> TarotCard | PlanetCard:
        if self.consumable_type == ConsumableType.PLANET:
            return PLANET_CARDS[self.card_id]
        return TAROT_CARDS[self.card_id]

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    def sell_value(self, fraction: float = 0.5) -> int:
        return max(1, math.floor(self.purchase_price * fraction))

    def __str__(self) -> str:
        return self.name


def create_consumable(card_id: str, purchase_price: int = 3) -> ConsumableInstance:
    """Create a consumable instance by ID (Planet or Tarot)."""
    if card_id in PLANET_CARDS:
        return ConsumableInstance(ConsumableType.PLANET, card_id, purchase_price)
    if card_id in TAROT_CARDS:
        return ConsumableInstance(ConsumableType.TAROT, card_id, purchase_price)
    raise ValueError(f"Unknown consumable: {card_id}")


def add_consumable(state: RunState, card_id: str) -> bool:
    """Give the player a consumable if a slot is free.

    Returns:
        True if the card was added, False if slots were full
    """
    if len(state.consumables) >= state.consumable_slots:
        return False
    state.consumables.append(create_consumable(card_id))
    return True


def get_all_tarot_ids() -> list[str]:
    """Get list of all Tarot card IDs."""
    return list(TAROT_CARDS.keys())


def get_all_planet_ids() -> list[str]:
    """Get list of all Planet card IDs."""
    return list(PLANET_CARDS.keys())


def get_available_planet_ids(state: RunState) -> list[str]:
    """Planets that may be offered: secret ones need their hand played."""
    return [
        p.id
        for p in PLANET_CARDS.values()
        if not p.secret or state.hands_played.get(p.hand_type, 0) > 0
    ]


def get_planet_for_hand_type(hand_type: HandType) -> str:
    return HAND_TYPE_TO_PLANET[hand_type]


# =============================================================================
# Tarot effects
# =============================================================================

TarotEffect = Callable[[RunState, list[int], random.Random], str]


def _enhance(enhancement: Enhancement) -> TarotEffect:
    def effect(state: RunState, targets: list[int], _rng: random.Random) -> str:
        for i in targets:
            state.hand[i] = state.hand[i].with_enhancement(enhancement)
        return f"{len(targets)} card(s) enhanced to {enhancement.value}"

    return effect


def _convert_suit(suit: Suit) -> TarotEffect:
    def effect(state: RunState, targets: list[int], _rng: random.Random) -> str:
        for i in targets:
            state.hand[i] = state.hand[i].with_suit(suit)
        return f"{len(targets)} card(s) converted to {suit.name.title()}"

    return effect


def _strength(state: RunState, targets: list[int], _rng: random.Random) -> str:
    for i in targets:
        card = state.hand[i]
        state.hand[i] = card.with_rank(card.rank.next_up())
    return f"{len(targets)} card(s) ranked up"


def _death(state: RunState, targets: list[int], _rng: random.Random) -> str:
    left, right = sorted(targets)
    state.hand[left] = state.hand[right]
    return f"Converted card into {state.hand[right]}"


def _hermit(state: RunState, _targets: list[int], _rng: random.Random) -> str:
    gain = min(max(0, state.money), 20)
    state.money += gain
    return f"Gained ${gain}"


def _temperance(state: RunState, _targets: list[int], _rng: random.Random) -> str:
    gain = min(sum(j.sell_value(state.sell_fraction) for j in state.jokers), 50)
    state.money += gain
    return f"Gained ${gain}"


def _create_random(pool: Callable[[RunState], list[str]], count: int) -> TarotEffect:
    def effect(state: RunState, _targets: list[int], rng: random.Random) -> str:
        created = []
        for _ in range(count):
            card_id = rng.choice(pool(state))
            if not add_consumable(state, card_id):
                break
            created.append(card_id)
        return f"Created {', '.join(created) or 'nothing'}"

    return effect


def _tarot_pool(_state: RunState) -> list[str]:
    # The Fool is not created by other Tarots
    return [t for t in TAROT_CARDS if t != "the_fool"]


def _fool(state: RunState, _targets: list[int], _rng: random.Random) -> str:
    add_consumable(state, state.last_consumable_id)
    return f"Created {state.last_consumable_id}"


def _judgement(state: RunState, _targets: list[int], rng: random.Random) -> str:
    pool = [
        d for d in JOKERS.values()
        if d.rarity in (JokerRarity.COMMON, JokerRarity.UNCOMMON, JokerRarity.RARE)
    ]
    definition = rng.choice(pool)
    state.jokers.append(definition.create_instance())
    return f"Created {definition.name}"


TAROT_EFFECTS: dict[str, TarotEffect] = {
    "the_fool": _fool,
    "the_magician": _enhance(Enhancement.LUCKY),
    "the_high_priestess": _create_random(get_available_planet_ids, 2),
    "the_empress": _enhance(Enhancement.MULT),
    "the_emperor": _create_random(_tarot_pool, 2),
    "the_hierophant": _enhance(Enhancement.BONUS),
    "the_lovers": _enhance(Enhancement.WILD),
    "the_chariot": _enhance(Enhancement.STEEL),
    "justice": _enhance(Enhancement.GLASS),
    "the_hermit": _hermit,
    "strength": _strength,
    "death": _death,
    "temperance": _temperance,
    "the_devil": _enhance(Enhancement.GOLD),
    "the_tower": _enhance(Enhancement.STONE),
    "the_star": _convert_suit(Suit.DIAMONDS),
    "the_moon": _convert_suit(Suit.CLUBS),
    "the_sun": _convert_suit(Suit.HEARTS),
    "the_world": _convert_suit(Suit.SPADES),
    "judgement": _judgement,
}


def _validate_tarot(state: RunState, tarot: TarotCard) -> None:
    """Raise if the tarot cannot be used right now."""
    selected = len(state.selected)
    if tarot.max_select == 0:
        if selected:
            raise InvalidSelection(f"{tarot.name} does not use selected cards")
    elif not tarot.min_select <= selected <= tarot.max_select:
        if tarot.min_select == tarot.max_select:
            raise InvalidSelection(f"{tarot.name} needs exactly {tarot.max_select} selected card(s)")
        raise InvalidSelection(
            f"{tarot.name} needs {tarot.min_select} to {tarot.max_select} selected cards"
        )

    if tarot.id == "the_fool":
        if state.last_consumable_id is None:
            raise InvalidSelection("No Tarot or Planet card used yet")
    elif tarot.id == "judgement":
        if len(state.jokers) >= state.joker_slots:
            raise InventoryFull("No free joker slot")


def use_consumable(state: RunState, index: int) -> str:
    """Use the consumable in slot ``index`` on the current selection.

    Args:
        state: Run state to modify
        index: Consumable slot

    Returns:
        Message describing what happened

    Raises:
        NotFound: index out of range
        InvalidSelection: wrong number of selected cards, or nothing for The Fool
        InventoryFull: Judgement with no free joker slot
    """
    if not 0 <= index < len(state.consumables):
        raise NotFound(f"No consumable at slot {index}")

    consumable = state.consumables[index]

    match consumable.consumable_type:
        case ConsumableType.PLANET:
            planet = PLANET_CARDS[consumable.card_id]
            state.consumables.pop(index)
            state.hand_levels[planet.hand_type] = state.level_of(planet.hand_type) + 1
            message = (
                f"{planet.hand_type.display_name} leveled up to "
                f"{state.hand_levels[planet.hand_type]}"
            )
        case ConsumableType.TAROT:
            tarot = TAROT_CARDS[consumable.card_id]
            _validate_tarot(state, tarot)
            targets = list(state.selected)
            state.consumables.pop(index)
            message = TAROT_EFFECTS[tarot.id](state, targets, state.rng)
            state.selected.clear()

    if consumable.card_id != "the_fool":
        state.last_consumable_id = consumable.card_id

    logger.info(f"Used {consumable.name}: {message}")
    return message
