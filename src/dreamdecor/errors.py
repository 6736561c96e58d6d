class DecorError(Exception):
    """Base error for Dream Decor domain exceptions."""


# ---------------------- Validation errors ----------------------
class DecorValidationError(DecorError):
    """Raised synchronously when a requested action is not allowed in the current state."""


class ValidationError(DecorValidationError):
    """Raised when provided inputs are invalid (negative amounts, bad sizes...)."""


class OutOfBoundsError(DecorValidationError):
    """Raised when a coordinate lies outside the grid."""

    def __init__(self, x: int, y: int, size: int) -> None:
        super().__init__(f"Tile ({x}, {y}) is outside the {size}x{size} grid.")
        self.x = x
        self.y = y
        self.size = size


class TileOccupiedError(DecorValidationError):
    """Raised when placing onto a tile (or stack slot) that already holds furniture."""


class TileEmptyError(DecorValidationError):
    """Raised when removing or rotating on a tile that holds nothing."""


class InsufficientFundsError(DecorValidationError):
    """Raised when the budget cannot cover a debit."""


class UnknownFurnitureError(DecorValidationError):
    """Raised when a furniture id is not registered in the catalog."""


class PlacementRuleError(DecorValidationError):
    """Raised when an item's placement class does not allow the requested placement."""


class GoalNotClaimableError(DecorValidationError):
    """Raised when claiming a goal that is absent or not yet completed."""


class InvalidOperationError(DecorValidationError):
    """Raised when an operation cannot be performed in the current state."""


class NoSessionError(InvalidOperationError):
    """Raised when a session-scoped action is requested while no session is active."""


class NoSaveError(InvalidOperationError):
    """Raised when continuing a game for an identity that has never saved."""


# ---------------------- Collaborator errors ----------------------
class CollaboratorError(DecorError):
    """Base class for failures of external collaborators (generators, storage)."""


class GenerationError(CollaboratorError):
    """Raised when goal or snippet generation fails."""


class PersistenceError(CollaboratorError):
    """Raised when persistence (save/load) operations fail."""


class SaveValidationError(PersistenceError):
    """Raised when validation of save data fails."""


class CorruptSaveError(PersistenceError):
    """Raised when a stored save cannot be decoded."""


class CatalogError(DecorError):
    """Raised when furniture or settings data files are invalid."""
