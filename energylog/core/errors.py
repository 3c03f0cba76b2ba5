"""Error taxonomy shared by the core and the shell.

Every error carries a user-facing message; shell entry points turn any
EnergyLogError into an error payload instead of crashing.
"""

from typing import Optional


class EnergyLogError(Exception):
    """Base class for all expected failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EnergyLogError, ValueError):
    """A field is outside its allowed bounds. Raised before any mutation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class InvalidBodyMetric(ValidationError):
    """Age, weight or height is outside the range the formulas accept."""


class UnsafeGoalParameter(EnergyLogError, ValueError):
    """A goal parameter is outside its safety bounds."""


class UnsafeWeightChangeRate(UnsafeGoalParameter):
    pass


class InvalidTargetWeight(UnsafeGoalParameter):
    pass


class InvalidTargetDate(UnsafeGoalParameter):
    pass


class UserNotFound(EnergyLogError, LookupError):
    def __init__(self, message: str = "No user profile found. Set up a profile first.") -> None:
        super().__init__(message)


class GoalNotFound(EnergyLogError, LookupError):
    def __init__(self, message: str = "No active goal found. Create a goal first.") -> None:
        super().__init__(message)


class ExternalFeedFailure(EnergyLogError):
    """The health feed could not be reached, refused, or timed out."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class StorageFailure(EnergyLogError):
    """The persistence layer failed. Never retried by the core."""
