"""Tests for recipe.scheduler."""

import logging

import pandas as pd
import pytest

from recipe import Action, Scheduler, create_scheduler
from recipe.errors import ConfigurationError, SchedulerError
from recipe.procedure import ProcedureState
from recipe.scheduler import FAILURE_COLUMNS


class CountingAction(Action):
    """Completes after a fixed number of updates."""

    def __init__(self, updates_needed, log=None, name=None):
        super().__init__(name)
        self.updates_needed = updates_needed
        self.log = log if log is not None else []
        self.exits = 0

    def on_enter(self):
        self.log.append((self.name, "enter"))

    def update(self, step_value):
        self.log.append((self.name, "update", step_value))
        if self.updates >= self.updates_needed:
            self.complete()

    def on_exit(self):
        self.exits += 1
        self.log.append((self.name, "exit"))


def run_actions(*actions):
    for action in actions:
        yield from action.enter()


def forever(received):
    while True:
        received.append((yield))


class TestScenarios:
    """The end to end scenarios the scheduler has to support."""

    def test_single_action_completing_on_first_update(self):
        """Scenario A: one action completing on its first update."""
        scheduler = Scheduler()
        action = CountingAction(1)
        scheduler.submit(run_actions, action)

        assert len(scheduler) == 1
        scheduler.update(0.016)

        assert scheduler.is_empty
        assert action.exits == 1

    def test_chain_of_two_actions(self):
        """Scenario B: an action needing 3 updates followed by one needing 2."""
        scheduler = Scheduler()
        first = CountingAction(3, name="first")
        second = CountingAction(2, name="second")
        procedure = scheduler.submit(run_actions, first, second)

        for _ in range(3):
            scheduler.update(1.0)
        assert first.updates == 3
        assert second.updates == 0
        assert procedure in scheduler

        for _ in range(2):
            scheduler.update(1.0)
        assert second.updates == 2
        assert procedure not in scheduler
        assert procedure.state is ProcedureState.COMPLETED

    def test_synchronous_failure_on_submit(self, caplog):
        """Scenario C: a procedure raising before any action is entered."""
        scheduler = Scheduler()
        scheduler.submit(forever, [])

        def broken():
            raise RuntimeError("no actions for you")
            yield

        with caplog.at_level(logging.ERROR):
            result = scheduler.submit(broken)

        assert result is None
        assert len(scheduler) == 1
        assert "no actions for you" in caplog.text

        [failure] = scheduler.failures
        assert failure.phase == "submit"
        assert failure.tick == 0
        assert isinstance(failure.error, RuntimeError)
        assert failure.procedure.state is ProcedureState.FAILED

    def test_failure_on_tick_two_is_isolated(self):
        """Scenario D: one of two procedures fails on tick 2."""
        scheduler = Scheduler()

        def fails_on_second_tick():
            yield
            yield
            raise ValueError("tick 2")

        received = []
        failing = scheduler.submit(fails_on_second_tick)
        survivor = scheduler.submit(forever, received)

        assert scheduler.update(1) == []
        failures = scheduler.update(2)

        assert [f.procedure for f in failures] == [failing]
        assert failures[0].tick == 2
        assert scheduler.procedures == (survivor,)

        scheduler.update(3)
        scheduler.update(4)
        assert received == [1, 2, 3, 4]


class TestOrdering:
    """Test ordering and hook sequencing guarantees."""

    def test_hooks_fire_in_strict_order_across_chain(self):
        """Test that action i+1 enters only after action i exits."""
        log = []
        actions = [CountingAction(n, log, name=f"a{i}") for i, n in enumerate((2, 1, 3))]
        scheduler = Scheduler()
        scheduler.submit(run_actions, *actions)

        for _ in range(6):
            scheduler.update(0.5)

        assert scheduler.is_empty
        events = [(name, kind) for name, kind, *_ in log]
        for previous, following in zip(actions, actions[1:]):
            assert events.index((previous.name, "exit")) < events.index(
                (following.name, "enter")
            )
        assert [a.updates for a in actions] == [2, 1, 3]
        assert all(a.exits == 1 for a in actions)

    def test_complete_across_ticks_is_idempotent(self):
        """Test that completing from outside between ticks acts like a single call."""
        action = CountingAction(100)
        scheduler = Scheduler()
        procedure = scheduler.submit(run_actions, action)

        scheduler.update(1)
        action.complete()
        action.complete()
        assert action.exits == 0

        scheduler.update(2)
        action.complete()

        assert action.updates == 2
        assert action.exits == 1
        assert procedure.state is ProcedureState.COMPLETED
        assert scheduler.is_empty

        scheduler.update(3)
        assert action.updates == 2
        assert action.exits == 1

    def test_procedures_resumed_in_submission_order(self):
        """Test that each live procedure is resumed once per tick in order."""
        order = []

        def tagged(tag):
            while True:
                yield
                order.append(tag)

        scheduler = Scheduler()
        for tag in "abc":
            scheduler.submit(tagged, tag)

        scheduler.update(1)
        scheduler.update(1)
        assert order == ["a", "b", "c", "a", "b", "c"]

    def test_all_procedures_receive_the_same_step_value(self):
        """Test that every procedure sees the tick's step value."""
        first, second = [], []
        scheduler = Scheduler()
        scheduler.submit(forever, first)
        scheduler.submit(forever, second)

        scheduler.update(0.25)
        assert first == second == [0.25]


class TestCollectionIntegrity:
    """Test the live collection across ticks."""

    def test_completed_and_failed_removed_order_kept(self):
        """Test that removal keeps the relative order of survivors."""
        scheduler = Scheduler()

        def finishes_after(ticks):
            for _ in range(ticks):
                yield

        def fails_after(ticks):
            for _ in range(ticks):
                yield
            raise ValueError

        p1 = scheduler.submit(forever, [])
        p2 = scheduler.submit(finishes_after, 1)
        p3 = scheduler.submit(forever, [])
        p4 = scheduler.submit(fails_after, 1)
        p5 = scheduler.submit(forever, [])

        failures = scheduler.update(1)

        assert scheduler.procedures == (p1, p3, p5)
        assert [f.procedure for f in failures] == [p4]
        assert p2.state is ProcedureState.COMPLETED
        assert len({id(p) for p in scheduler}) == len(scheduler)

    def test_procedure_completed_on_submit_reaped_without_resume(self):
        """Test that an already completed procedure is removed on the next scan."""
        scheduler = Scheduler()
        procedure = scheduler.submit(lambda: "instant")

        assert procedure.state is ProcedureState.COMPLETED
        assert procedure in scheduler

        assert scheduler.update(1) == []
        assert scheduler.is_empty
        assert procedure.resumes == 0

    def test_submissions_during_update_join_next_tick(self):
        """Test that work submitted by a procedure is not resumed in the same pass."""
        scheduler = Scheduler()
        child_values = []

        def spawner():
            yield
            scheduler.submit(forever, child_values)

        scheduler.submit(spawner)
        scheduler.update(1)

        assert child_values == []
        assert len(scheduler) == 1
        assert scheduler.procedures[0].name == "forever"

        scheduler.update(2)
        assert child_values == [2]

    def test_failing_submit_during_update_reported_for_the_tick(self):
        """Test that a nested submission failure is part of the tick's failures."""
        scheduler = Scheduler()

        def broken():
            raise KeyError("child")

        def spawner():
            yield
            scheduler.submit(broken)
            yield

        scheduler.submit(spawner)
        failures = scheduler.update(1)

        assert [f.phase for f in failures] == ["submit"]
        assert len(scheduler) == 1

    def test_empty_update(self):
        """Test that updating an empty scheduler is harmless."""
        scheduler = Scheduler()
        assert scheduler.update(1.0) == []
        assert scheduler.ticks == 1


class TestMisuse:
    """Test fail-fast behavior on misuse."""

    def test_reentrant_update_fails_only_that_procedure(self):
        """Test that calling update from inside a procedure fails that procedure."""
        scheduler = Scheduler()
        received = []

        def reentrant():
            yield
            scheduler.update(1)

        scheduler.submit(reentrant)
        scheduler.submit(forever, received)
        failures = scheduler.update(5)

        assert len(failures) == 1
        assert isinstance(failures[0].error, SchedulerError)
        assert received == [5]
        assert len(scheduler) == 1

    def test_reentering_completed_action_is_a_failure(self):
        """Test that entering a completed action fails the procedure."""
        scheduler = Scheduler()
        action = CountingAction(1)

        def twice():
            yield from action.enter()
            yield from action.enter()

        scheduler.submit(twice)
        [failure] = scheduler.update(1)

        assert "re-entered after completion" in str(failure.error)
        assert scheduler.is_empty


class TestBookkeeping:
    """Test counters, configuration and reporting."""

    def test_ticks_and_time(self):
        """Test that ticks count updates and time sums numeric step values."""
        scheduler = Scheduler()
        scheduler.update(0.5)
        scheduler.update(1.5)
        scheduler.update("not a number")

        assert scheduler.ticks == 3
        assert scheduler.time == pytest.approx(2.0)

    def test_failure_history_is_bounded(self):
        """Test that only the most recent failures are retained."""
        scheduler = Scheduler(failure_history=2)

        def broken(i):
            raise ValueError(i)

        for i in range(3):
            scheduler.submit(broken, i)

        assert [str(f.error) for f in scheduler.failures] == ["1", "2"]

    def test_failure_history_zero_keeps_none(self):
        """Test that failures are still returned per tick without history."""
        scheduler = Scheduler(failure_history=0)

        def fails():
            yield
            raise ValueError

        scheduler.submit(fails)
        assert len(scheduler.update(1)) == 1
        assert scheduler.failures == []

    @pytest.mark.parametrize(
        ("kwargs", "param"),
        [
            ({"name": ""}, "name"),
            ({"name": 3}, "name"),
            ({"failure_history": -1}, "failure_history"),
            ({"failure_history": 1.5}, "failure_history"),
            ({"failure_history": True}, "failure_history"),
        ],
    )
    def test_invalid_configuration(self, kwargs, param):
        """Test that invalid constructor arguments are rejected."""
        with pytest.raises(ConfigurationError, match=param) as excinfo:
            Scheduler(**kwargs)
        assert excinfo.value.param_name == param

    def test_failures_dataframe(self):
        """Test the failure report as a DataFrame."""
        scheduler = Scheduler()
        empty = scheduler.get_failures_dataframe()
        assert isinstance(empty, pd.DataFrame)
        assert list(empty.columns) == FAILURE_COLUMNS
        assert len(empty) == 0

        def fails():
            yield
            raise ValueError("late")

        procedure = scheduler.submit(fails)
        scheduler.update(0.5)

        df = scheduler.get_failures_dataframe()
        assert len(df) == 1
        row = df.iloc[0]
        assert row["tick"] == 1
        assert row["time"] == 0.5
        assert row["phase"] == "resume"
        assert row["procedure_id"] == procedure.unique_id
        assert row["procedure"] == procedure.name
        assert row["error_type"] == "ValueError"
        assert row["message"] == "late"

    def test_create_scheduler_is_independent(self):
        """Test that create_scheduler returns fresh schedulers."""
        first = create_scheduler(name="first")
        second = create_scheduler()
        first.submit(forever, [])

        assert first.name == "first"
        assert len(first) == 1
        assert second.is_empty

    def test_repr(self):
        """Test the string representation."""
        assert "ui" in repr(Scheduler(name="ui"))
