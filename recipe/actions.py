"""recipe.actions: units of work that span several steps.

An Action is entered from a work procedure with ``yield from action.enter()``.
It calls ``on_enter`` once, then suspends the procedure and calls ``update``
with each step value it is resumed with, until ``complete`` is called, and
finally calls ``on_exit`` once. Entering several actions one after another
runs them in sequence, each for as many steps as it needs::

    def patrol(guard):
        yield from MoveTo(guard, (0, 10)).enter()
        yield from Wait(2.0).enter()
        yield from MoveTo(guard, (0, 0)).enter()

    scheduler.submit(patrol, guard)

"""

from __future__ import annotations

from collections.abc import Callable, Generator
from enum import Enum
from functools import wraps
from typing import Any

from recipe.errors import ActionStateError
from recipe.procedure import suspend

__all__ = ["Action", "ActionPhase", "create_action"]


def _as_method(hook: Callable) -> Callable:
    """Wrap any callable so it is bound to the action like a method."""

    @wraps(hook)
    def method(self, *args):
        return hook(self, *args)

    return method


class ActionPhase(Enum):
    """Lifecycle phases of an Action."""

    CONSTRUCTED = "constructed"
    RUNNING = "running"
    EXITED = "exited"
    FAILED = "failed"


class Action:
    """An action that runs over one or more steps.

    Subclass it, or use ``Action.extend``, and override the hooks:

    - ``on_enter()``: called once when the action is entered.
    - ``update(step_value)``: called once per step until the action completes.
    - ``on_exit()``: called once after the action completed.

    An Action is single use. Entering it a second time raises ActionStateError.

    Attributes:
        name: Human-readable identifier, defaults to the class name.
        phase: The current ActionPhase.
        updates: The number of times ``update`` has been called.
    """

    def __init__(self, name: str | None = None):
        """Initialise an Action."""
        self.name = name if name is not None else type(self).__name__
        self.phase: ActionPhase = ActionPhase.CONSTRUCTED
        self.updates: int = 0
        self._finished: bool = False

    @classmethod
    def extend(
        cls,
        name: str | None = None,
        *,
        on_enter: Callable[[Action], None] | None = None,
        update: Callable[[Action, Any], None] | None = None,
        on_exit: Callable[[Action], None] | None = None,
    ) -> type[Action]:
        """Create a new Action variant derived from this class.

        Hooks given as arguments are installed as methods, so they receive
        the action instance as their first argument. This holds for any
        callable, including partials and callable objects. Hooks left out are
        inherited from this class.

        Args:
            name: class name of the variant, defaults to the name of this class
            on_enter: replacement for on_enter
            update: replacement for update
            on_exit: replacement for on_exit

        Returns:
            the new subclass

        Examples:
            Countdown = Action.extend(
                "Countdown",
                update=lambda self, dt: self.complete() if self.updates >= 3 else None,
            )

        """
        namespace = {}
        for hook_name, hook in (
            ("on_enter", on_enter),
            ("update", update),
            ("on_exit", on_exit),
        ):
            if hook is None:
                continue
            if not callable(hook):
                raise TypeError(f"{hook_name} must be callable, got {hook!r}")
            namespace[hook_name] = _as_method(hook)
        return type(name or cls.__name__, (cls,), namespace)

    @property
    def finished(self) -> bool:
        """Whether complete() has been called."""
        return self._finished

    @property
    def running(self) -> bool:
        """Whether the action's loop is active."""
        return self.phase is ActionPhase.RUNNING

    def on_enter(self) -> None:
        """Called once when the action is entered."""

    def update(self, step_value: Any) -> None:
        """Called once per step while the action is running.

        Args:
            step_value: the step value the owning procedure was resumed with,
                typically the time elapsed since the previous step.
        """

    def on_exit(self) -> None:
        """Called once after the action completed."""

    def complete(self) -> None:
        """Mark the action as finished.

        The running loop ends when the current hook returns, so no further
        update is called. Calling it more than once has no additional effect.
        """
        self._finished = True

    def enter(self) -> Generator[None, Any, None]:
        """Run the action to completion inside the current procedure.

        This is a generator and must be driven with ``yield from``. A plain
        ``action.enter()`` call creates the generator without running it.

        Raises:
            ActionStateError: if the action is running or was entered before.
        """
        if self.phase is ActionPhase.RUNNING:
            raise ActionStateError(self, "action entered while already running")
        if self.phase is not ActionPhase.CONSTRUCTED:
            raise ActionStateError(self, "action re-entered after completion")

        self.phase = ActionPhase.RUNNING
        try:
            self.on_enter()
            while not self._finished:
                step_value = yield from suspend()
                self.updates += 1
                self.update(step_value)
            self.on_exit()
        except BaseException:
            self.phase = ActionPhase.FAILED
            raise
        self.phase = ActionPhase.EXITED

    def __repr__(self) -> str:
        """String representation."""
        return f"Action({self.name!r}, phase={self.phase.value}, updates={self.updates})"


def create_action(
    name: str | None = None,
    *,
    on_enter: Callable[[Action], None] | None = None,
    update: Callable[[Action, Any], None] | None = None,
    on_exit: Callable[[Action], None] | None = None,
) -> type[Action]:
    """Return a fresh Action variant, see ``Action.extend``."""
    return Action.extend(name, on_enter=on_enter, update=update, on_exit=on_exit)
