"""Cooperative scheduling of suspendable procedures.

Core objects: Scheduler, Failure
"""

from __future__ import annotations

import numbers
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

import pandas as pd

from recipe.errors import ConfigurationError, SchedulerError
from recipe.procedure import Procedure, ProcedureState
from recipe.recipe_logging import create_module_logger, function_logger, method_logger

__all__ = ["FAILURE_COLUMNS", "Failure", "Scheduler", "create_scheduler"]

_recipe_logger = create_module_logger()

FAILURE_COLUMNS = [
    "tick",
    "time",
    "phase",
    "procedure_id",
    "procedure",
    "error_type",
    "message",
]


@dataclass(frozen=True)
class Failure:
    """An exception raised by a procedure while the scheduler was driving it.

    Attributes:
        procedure: the procedure that raised
        error: the exception it raised
        phase: "submit" if it raised before its first suspension, "resume" otherwise
        tick: the scheduler tick during which it raised, 0 before the first update
        time: the scheduler time at that tick
    """

    procedure: Procedure
    error: Exception
    phase: str
    tick: int
    time: float

    def as_dict(self) -> dict[str, Any]:
        """Return a flat dict representation, one entry per FAILURE_COLUMNS."""
        return {
            "tick": self.tick,
            "time": self.time,
            "phase": self.phase,
            "procedure_id": self.procedure.unique_id,
            "procedure": self.procedure.name,
            "error_type": type(self.error).__name__,
            "message": str(self.error),
        }


class Scheduler:
    """Drives a collection of suspended procedures, one step at a time.

    Procedures are added with ``submit`` and advanced with ``update``. Every
    call to ``update`` resumes each live procedure once, in submission order,
    with the same step value, and removes the ones that completed or failed.
    A procedure that raises is logged and recorded as a Failure; it never
    stops the other procedures.

    Attributes:
        name: identifier used in log messages
        ticks: the number of times ``update`` has been called
        time: the sum of all numeric step values passed to ``update``

    Notes:
        There is no cancellation and no timeout. A procedure waiting on an
        action that never completes stays in the scheduler forever.

    """

    @method_logger(__name__)
    def __init__(self, *, name: str = "scheduler", failure_history: int | None = None) -> None:
        """Create a new scheduler.

        Args:
            name: identifier used in log messages
            failure_history: how many Failure records to retain. None keeps all of them.

        Raises:
            ConfigurationError: if name or failure_history are invalid

        """
        if not isinstance(name, str) or not name:
            raise ConfigurationError("name", "must be a non-empty string")
        if failure_history is not None and (
            isinstance(failure_history, bool)
            or not isinstance(failure_history, int)
            or failure_history < 0
        ):
            raise ConfigurationError(
                "failure_history", f"must be None or a non-negative int, got {failure_history!r}"
            )

        self.name = name
        self.ticks: int = 0
        self.time: float = 0.0

        self._procedures: list[Procedure] = []
        self._failures: deque[Failure] = deque(maxlen=failure_history)
        self._tick_failures: list[Failure] | None = None

    @property
    def procedures(self) -> tuple[Procedure, ...]:
        """Snapshot of the live collection, in submission order."""
        return tuple(self._procedures)

    @property
    def is_empty(self) -> bool:
        """Whether no procedure is left."""
        return not self._procedures

    @property
    def failures(self) -> list[Failure]:
        """The retained Failure records, oldest first."""
        return list(self._failures)

    @property
    def updating(self) -> bool:
        """Whether an ``update`` call is in progress."""
        return self._tick_failures is not None

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Procedure | None:
        """Start ``fn(*args, **kwargs)`` as a new procedure.

        The procedure runs immediately until its first suspension. If it raises
        before that, the failure is logged and recorded and the procedure is
        discarded. Procedures submitted from inside a running procedure are
        first resumed on the next call to ``update``.

        Args:
            fn: the work procedure, typically a generator function entering actions
            args: positional arguments for fn
            kwargs: keyword arguments for fn

        Returns:
            the new procedure, or None if it failed before its first suspension

        """
        procedure = Procedure(fn, args, kwargs)
        try:
            procedure.run()
        except Exception as exc:
            self._record(procedure, exc, "submit")
            return None

        self._procedures.append(procedure)
        _recipe_logger.debug(f"[{self.name}] submitted {procedure!r}")
        return procedure

    def update(self, step_value: Any = None) -> list[Failure]:
        """Resume every live procedure once with ``step_value``.

        Args:
            step_value: the per-tick input, typically the elapsed time since the last tick

        Returns:
            the failures raised during this tick, in the order they occurred

        Raises:
            SchedulerError: if called from inside one of this scheduler's procedures

        """
        if self.updating:
            raise SchedulerError(
                f"scheduler '{self.name}' updated from inside one of its own procedures"
            )

        self.ticks += 1
        if isinstance(step_value, numbers.Real) and not isinstance(step_value, bool):
            self.time += step_value

        failures: list[Failure] = []
        self._tick_failures = failures
        try:
            # procedures submitted during this pass join on the next tick
            for procedure in tuple(self._procedures):
                if procedure.state is not ProcedureState.SUSPENDED:
                    continue
                try:
                    procedure.resume(step_value)
                except Exception as exc:
                    self._record(procedure, exc, "resume")
        finally:
            self._tick_failures = None
            self._reap()

        return failures

    def get_failures_dataframe(self) -> pd.DataFrame:
        """Return the retained failures as a DataFrame with FAILURE_COLUMNS."""
        return pd.DataFrame(
            [failure.as_dict() for failure in self._failures], columns=FAILURE_COLUMNS
        )

    def _reap(self) -> None:
        alive = []
        for procedure in self._procedures:
            if procedure.alive:
                alive.append(procedure)
            else:
                _recipe_logger.debug(f"[{self.name}] removed {procedure!r}")
        self._procedures = alive

    def _record(self, procedure: Procedure, exc: Exception, phase: str) -> Failure:
        failure = Failure(procedure, exc, phase, self.ticks, self.time)
        _recipe_logger.error(
            f"[{self.name}] {phase} failure in {procedure!r}: {exc!r}", exc_info=exc
        )
        self._failures.append(failure)
        if self._tick_failures is not None:
            self._tick_failures.append(failure)
        return failure

    def __len__(self) -> int:
        """Number of live procedures."""
        return len(self._procedures)

    def __iter__(self) -> Iterator[Procedure]:
        """Iterate over a snapshot of the live procedures."""
        return iter(tuple(self._procedures))

    def __contains__(self, procedure: object) -> bool:
        """Whether procedure is in the live collection."""
        return any(entry is procedure for entry in self._procedures)

    def __repr__(self) -> str:
        """String representation."""
        return f"Scheduler({self.name!r}, procedures={len(self)}, ticks={self.ticks})"


@function_logger(__name__)
def create_scheduler(**kwargs: Any) -> Scheduler:
    """Return a fresh Scheduler, independent of any other."""
    return Scheduler(**kwargs)
