"""Recipe-specific exception hierarchy."""

import recipe


class RecipeError(Exception):
    """Base class for all Recipe-specific exceptions.
    It automatically appends the Recipe version to help with debugging reports.
    """

    def __init__(self, message: str):
        self.recipe_version = getattr(recipe, "__version__", "unknown")
        # Store the original message cleanly for programmatic access
        self.original_message = message
        full_message = f"[Recipe {self.recipe_version}] {message}"
        super().__init__(full_message)


class ConfigurationError(RecipeError):
    """Raised when scheduler or run control parameters are invalid."""

    def __init__(self, param_name: str = None, reason: str = None):
        # Allow flexible usage: raise ConfigurationError("Generic message")
        # OR: raise ConfigurationError("dt", "must be positive")
        if param_name and reason:
            message = f"Invalid configuration for '{param_name}': {reason}"
            self.param_name = param_name
        else:
            message = param_name if param_name else "Invalid configuration"
            self.param_name = None

        super().__init__(message)


# Action Errors
class ActionError(RecipeError):
    """Generic errors related to action behavior or lifecycle."""


class ActionStateError(ActionError):
    """Raised when an action is entered in a state that does not allow it.

    Examples: entering an action a second time after it completed, or
    entering an action that is still running.
    """

    def __init__(self, action, reason: str):
        self.action = action
        super().__init__(f"{reason}: {action!r}")


# Procedure Errors
class ProcedureError(RecipeError):
    """Generic errors related to suspendable procedures."""


class ProcedureStateError(ProcedureError):
    """Raised when a procedure is resumed in a state that does not allow it.

    Example: resuming a procedure that already completed or failed.
    """

    def __init__(self, procedure, reason: str):
        self.procedure = procedure
        super().__init__(f"{reason}: {procedure!r}")


# Scheduler Errors
class SchedulerError(RecipeError):
    """Errors related to driving the scheduler (e.g. a re-entrant update)."""
