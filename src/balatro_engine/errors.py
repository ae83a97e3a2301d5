"""Rejections raised by engine components.

Every error here describes a command the player was not allowed to issue.
They are raised before any state is touched and converted into a failed
ActionResult at the command boundary.
"""


class EngineError(Exception):
    """Base class for recoverable command rejections."""


class InvalidSelection(EngineError):
    """Selected cards violate size, emptiness or boss constraints."""


class InsufficientFunds(EngineError):
    """A purchase or reroll costs more than the player has."""


class InventoryFull(EngineError):
    """No free joker or consumable slot."""


class NotFound(EngineError):
    """Offer, joker or consumable index out of range."""


class IllegalTransition(EngineError):
    """Command not valid in the current phase."""
