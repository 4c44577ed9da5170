"""
goalboard exception hierarchy.

- GoalboardError: base for every known error
- GoalNotFoundError: a goal id is absent from the provided snapshot
- InvalidTransitionError: a state change the engine refuses to perform
- TransferConflictError: a commit acted on a different set than was previewed
- PersistenceFailure: the external store rejected or failed a write batch
- InvalidPeriodError: a period value outside its calendar range
- ConfigError: runtime configuration problem

None of these is fatal to the process.
"""
from typing import Iterable, Optional


class GoalboardError(Exception):
    """Base class for all goalboard errors.

    Catching this handles every expected failure of the engine.
    """

    code = "UNEXPECTED_ERROR"

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: what went wrong
            hint: what the user can do about it
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return a message suitable for a toast."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class GoalNotFoundError(GoalboardError):
    """A goal id is not present in the snapshot."""

    code = "NOT_FOUND"

    def __init__(self, goal_id: str):
        super().__init__(f"Goal not found: {goal_id}", hint="Refresh the view and try again")
        self.goal_id = goal_id


class InvalidTransitionError(GoalboardError):
    """The requested state change is not allowed.

    Raised instead of silently cascading or guessing.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, goal_id: Optional[str] = None):
        super().__init__(message)
        self.goal_id = goal_id


class TransferConflictError(GoalboardError):
    """The committed goal set differs from the one shown in the preview.

    The commit still happens with the freshly derived set; this error is
    reported alongside the result so the caller can inform the user.
    """

    code = "CONFLICT"

    def __init__(self, shown_ids: Iterable[str], acted_ids: Iterable[str]):
        self.shown_ids = frozenset(shown_ids)
        self.acted_ids = frozenset(acted_ids)
        self.dropped_ids = self.shown_ids - self.acted_ids
        self.added_ids = self.acted_ids - self.shown_ids
        super().__init__(
            f"Moved {len(self.acted_ids)} goals; preview showed {len(self.shown_ids)} "
            f"({len(self.dropped_ids)} no longer movable, {len(self.added_ids)} new)",
            hint="Goals changed between preview and confirm",
        )


class PersistenceFailure(GoalboardError):
    """The store failed to apply a write batch."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, hint="Your change was not saved; please retry")
        self.cause = cause

    @classmethod
    def wrap(cls, error: BaseException) -> "PersistenceFailure":
        if isinstance(error, PersistenceFailure):
            return error
        return cls(f"Failed to save changes: {error}", cause=error)


class InvalidPeriodError(GoalboardError, ValueError):
    """A year/quarter/week/day value is out of range."""

    code = "VALIDATION_ERROR"


class ConfigError(GoalboardError):
    """Runtime configuration error."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


ERROR_TITLES = {
    "VALIDATION_ERROR": "Invalid Operation",
    "NOT_FOUND": "Not Found",
    "UNAUTHORIZED": "Access Denied",
    "CONFLICT": "Operation Conflict",
    "INTERNAL_ERROR": "System Error",
    "UNEXPECTED_ERROR": "System Error",
}


def error_title(error: BaseException) -> str:
    """Short title for displaying an error."""
    code = getattr(error, "code", "UNEXPECTED_ERROR")
    return ERROR_TITLES.get(code, ERROR_TITLES["UNEXPECTED_ERROR"])
