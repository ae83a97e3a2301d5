"""Player intents accepted by GameEngine.dispatch.

The presentation layer turns key presses and clicks into these values;
the engine never sees raw input.
"""

from dataclasses import dataclass
from enum import Enum


class SortKey(Enum):
    """How to order the hand."""

    RANK = "rank"
    SUIT = "suit"


@dataclass(frozen=True)
class SelectBlind:
    """Play the blind currently on offer."""


@dataclass(frozen=True)
class SkipBlind:
    """Skip the Small or Big blind currently on offer."""


@dataclass(frozen=True)
class ToggleCardSelection:
    index: int


@dataclass(frozen=True)
class PlaySelection:
    pass


@dataclass(frozen=True)
class DiscardSelection:
    pass


@dataclass(frozen=True)
class SortHandBy:
    key: SortKey = SortKey.RANK


@dataclass(frozen=True)
class BuyOffer:
    index: int


@dataclass(frozen=True)
class SellJoker:
    index: int


@dataclass(frozen=True)
class SellConsumable:
    index: int


@dataclass(frozen=True)
class UseConsumable:
    index: int


@dataclass(frozen=True)
class MoveJoker:
    """Move a joker to another slot (order affects scoring!)."""

    source: int
    target: int


@dataclass(frozen=True)
class RerollShop:
    pass


@dataclass(frozen=True)
class LeaveShop:
    pass


@dataclass(frozen=True)
class NewRun:
    seed: int | None = None


@dataclass(frozen=True)
class Quit:
    """Abandon the run and return to the main menu."""


Command = (
    SelectBlind
    | SkipBlind
    | ToggleCardSelection
    | PlaySelection
    | DiscardSelection
    | SortHandBy
    | BuyOffer
    | SellJoker
    | SellConsumable
    | UseConsumable
    | MoveJoker
    | RerollShop
    | LeaveShop
    | NewRun
    | Quit
)
