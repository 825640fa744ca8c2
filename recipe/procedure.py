"""Suspendable procedures, the substrate actions run on.

A procedure wraps a caller-supplied work function. When the work function
is a generator function, every ``yield`` in it (or in anything it
delegates to with ``yield from``) is a point where the procedure hands
control back to its driver. The driver later resumes it with a step value,
which becomes the value of the suspended ``yield`` expression.

Core objects: ProcedureState, Procedure, suspend
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Generator
from contextlib import contextmanager
from enum import Enum
from itertools import count
from typing import Any, ClassVar

from recipe.errors import ProcedureStateError


class ProcedureState(Enum):
    """Lifecycle states of a procedure."""

    RUNNABLE = "runnable"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        """Whether a procedure in this state can never run again."""
        return self in (ProcedureState.COMPLETED, ProcedureState.FAILED)


def suspend() -> Generator[None, Any, Any]:
    """Pause the running procedure until its driver resumes it.

    Use it with ``yield from`` inside a work procedure or an action::

        step_value = yield from suspend()

    Returns:
        the step value passed to the next resume.
    """
    step_value = yield
    return step_value


def _describe(fn: Callable) -> str:
    name = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None)
    if name is None:
        # functools.partial and other wrappers
        inner = getattr(fn, "func", None)
        return _describe(inner) if inner is not None else repr(fn)
    return name


class Procedure:
    """A suspendable unit of sequential work.

    Attributes:
        unique_id: process-wide identifier, assigned on creation.
        name: human readable name, defaults to the work function's qualified name.
        state: the current ProcedureState.
        result: the value returned by the work function once COMPLETED.
        error: the exception raised by the work function once FAILED.
        resumes: the number of times the procedure has been resumed.

    Notes:
        A procedure runs only while ``run`` or ``resume`` is on the stack;
        exactly one procedure executes at any instant, and there is no
        preemption between suspension points.

    """

    _ids: ClassVar[count] = count(1)

    def __init__(
        self,
        fn: Callable[..., Any],
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
        name: str | None = None,
    ) -> None:
        """Create a new, not yet started procedure.

        Args:
            fn: the work function; typically a generator function
            args: positional arguments for fn
            kwargs: keyword arguments for fn
            name: optional name, used in logging and repr

        """
        if not callable(fn):
            raise TypeError(f"work procedure must be callable, got {fn!r}")
        self.unique_id: int = next(self._ids)
        self.name: str = name if name is not None else _describe(fn)
        self.fn = fn
        self.args = tuple(args)
        self.kwargs = dict(kwargs) if kwargs else {}

        self.state: ProcedureState = ProcedureState.RUNNABLE
        self.result: Any = None
        self.error: BaseException | None = None
        self.resumes: int = 0

        self._generator: Generator | None = None
        self._started = False
        self._executing = False

    @classmethod
    def start(cls, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Procedure:
        """Create a procedure for ``fn(*args, **kwargs)`` and run it to its first suspension.

        Raises:
            Exception: whatever ``fn`` raises before its first suspension.
                The procedure is FAILED in that case and no handle is returned.
        """
        procedure = cls(fn, args, kwargs)
        procedure.run()
        return procedure

    @property
    def alive(self) -> bool:
        """Whether the procedure can still make progress."""
        return not self.state.terminal

    @property
    def running(self) -> bool:
        """Whether the procedure is executing right now."""
        return self._executing

    def run(self) -> ProcedureState:
        """Begin executing the work function on the calling flow of control.

        Runs until the work function suspends (SUSPENDED) or returns (COMPLETED).
        A non-generator work function completes immediately.

        Returns:
            the state the procedure is in afterwards

        Raises:
            ProcedureStateError: if the procedure was already started
        """
        if self._started:
            raise ProcedureStateError(self, "procedure already started")
        self._started = True

        with self._execution():
            outcome = self.fn(*self.args, **self.kwargs)
            if inspect.isgenerator(outcome):
                self._generator = outcome
                self._advance(None)
            else:
                self._complete(outcome)
        return self.state

    def resume(self, step_value: Any = None) -> ProcedureState:
        """Continue from the last suspension point with ``step_value``.

        Args:
            step_value: becomes the value of the suspended ``yield``

        Returns:
            the state the procedure is in afterwards

        Raises:
            ProcedureStateError: if the procedure is not suspended
            Exception: whatever the procedure raises while running; it is FAILED afterwards
        """
        if self._executing:
            raise ProcedureStateError(self, "procedure resumed from inside itself")
        if self.state is not ProcedureState.SUSPENDED:
            if self.state.terminal:
                reason = f"cannot resume a {self.state.value} procedure"
            else:
                reason = "procedure resumed before it was started"
            raise ProcedureStateError(self, reason)

        self.resumes += 1
        with self._execution():
            self._advance(step_value)
        return self.state

    def _advance(self, value: Any) -> None:
        try:
            self._generator.send(value)
        except StopIteration as stop:
            self._complete(stop.value)
        else:
            self.state = ProcedureState.SUSPENDED

    def _complete(self, result: Any) -> None:
        self.state = ProcedureState.COMPLETED
        self.result = result
        self._generator = None

    @contextmanager
    def _execution(self):
        self.state = ProcedureState.RUNNABLE
        self._executing = True
        try:
            yield
        except BaseException as exc:
            self.state = ProcedureState.FAILED
            self.error = exc
            self._generator = None
            raise
        finally:
            self._executing = False

    def __repr__(self) -> str:
        """String representation."""
        return f"Procedure({self.name!r}, id={self.unique_id}, state={self.state.value})"
