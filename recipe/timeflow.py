"""Driving a scheduler through time.

The Scheduler itself only knows single ticks. RunControl wraps the loop a
caller would otherwise write around ``Scheduler.update``:

- run_for: tick with a fixed step until a duration has elapsed
- run_while: tick while a condition holds
- run_until_empty: tick until every procedure has finished
- run_steps: tick once per given step value
"""

from __future__ import annotations

import numbers
from collections.abc import Callable, Iterable

import numpy as np

from recipe.errors import ConfigurationError
from recipe.recipe_logging import create_module_logger
from recipe.scheduler import Failure, Scheduler

__all__ = ["RunControl"]

_recipe_logger = create_module_logger()


def _check_real(param_name: str, value, *, allow_zero: bool = False) -> float:
    if (
        isinstance(value, bool)
        or not isinstance(value, numbers.Real)
        or not np.isfinite(value)
    ):
        raise ConfigurationError(
            param_name, f"must be a finite real number, got {value!r}"
        )
    if value < 0 or (value == 0 and not allow_zero):
        reason = "must not be negative" if allow_zero else "must be positive"
        raise ConfigurationError(param_name, reason)
    return float(value)


def _check_max_ticks(max_ticks: int | None) -> None:
    if max_ticks is None:
        return
    if isinstance(max_ticks, bool) or not isinstance(max_ticks, int) or max_ticks < 0:
        raise ConfigurationError(
            "max_ticks", f"must be None or a non-negative int, got {max_ticks!r}"
        )


class RunControl:
    """Controls time advancement for a scheduler.

    Attributes:
        scheduler: The scheduler being driven
    """

    def __init__(self, scheduler: Scheduler) -> None:
        """Initialize run control.

        Args:
            scheduler: the scheduler to drive
        """
        self.scheduler = scheduler

    def run_for(self, duration: int | float, dt: int | float) -> list[Failure]:
        """Tick with step ``dt`` until ``duration`` has elapsed.

        The last step is shortened so the step values add up to ``duration``.

        Args:
            duration: the amount of time to advance
            dt: the step value of each tick

        Returns:
            the failures raised during these ticks

        Examples:
            # Advance 1 second at 60 ticks per second
            RunControl(scheduler).run_for(1.0, dt=1 / 60)
        """
        duration = _check_real("duration", duration, allow_zero=True)
        dt = _check_real("dt", dt)

        # a ratio a rounding error above a whole number of steps needs no extra tick
        ratio = duration / dt
        n_ticks = int(np.ceil(ratio))
        if n_ticks > 0 and np.isclose(ratio, n_ticks - 1, rtol=1e-9, atol=0.0):
            n_ticks -= 1

        failures: list[Failure] = []
        for tick in range(n_ticks):
            if tick < n_ticks - 1:
                step_value = dt
            else:
                step_value = duration - dt * (n_ticks - 1)
            failures.extend(self.scheduler.update(step_value))
        return failures

    def run_while(
        self,
        condition: Callable[[Scheduler], bool],
        dt: int | float,
        max_ticks: int | None = None,
    ) -> list[Failure]:
        """Tick with step ``dt`` while a condition remains true.

        Args:
            condition: A function that takes the scheduler and returns bool
            dt: the step value of each tick
            max_ticks: stop after this many ticks even if condition still holds

        Returns:
            the failures raised during these ticks

        Examples:
            # Run until fewer than 3 procedures are left
            RunControl(scheduler).run_while(lambda s: len(s) >= 3, dt=0.1)
        """
        dt = _check_real("dt", dt)
        _check_max_ticks(max_ticks)

        failures: list[Failure] = []
        ticks = 0
        while condition(self.scheduler):
            if max_ticks is not None and ticks >= max_ticks:
                _recipe_logger.debug(
                    f"[{self.scheduler.name}] run_while stopped after {ticks} ticks"
                )
                break
            failures.extend(self.scheduler.update(dt))
            ticks += 1
        return failures

    def run_until_empty(
        self, dt: int | float, max_ticks: int | None = None
    ) -> list[Failure]:
        """Tick with step ``dt`` until no procedure is left.

        Args:
            dt: the step value of each tick
            max_ticks: upper bound on the number of ticks

        Returns:
            the failures raised during these ticks
        """
        return self.run_while(
            lambda scheduler: not scheduler.is_empty, dt, max_ticks=max_ticks
        )

    def run_steps(self, step_values: Iterable[float] | np.ndarray) -> list[Failure]:
        """Tick once for each of the given step values.

        Args:
            step_values: one-dimensional sequence or array of non-negative, finite step values

        Returns:
            the failures raised during these ticks

        Examples:
            # Replay recorded frame times
            RunControl(scheduler).run_steps(np.diff(frame_timestamps))
        """
        if not isinstance(step_values, np.ndarray):
            step_values = list(step_values)
        values = np.asarray(step_values, dtype=float)
        if values.ndim != 1:
            raise ConfigurationError(
                "step_values", f"must be one-dimensional, got shape {values.shape}"
            )
        if not np.all(np.isfinite(values)) or np.any(values < 0):
            raise ConfigurationError(
                "step_values", "must all be finite and non-negative"
            )

        failures: list[Failure] = []
        for step_value in values:
            failures.extend(self.scheduler.update(float(step_value)))
        return failures
