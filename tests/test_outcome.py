"""OutcomeCell unit tests.

Test coverage:
- Single assignment (first writer wins)
- Waiter notification semantics
- Concurrent resolution stress
"""

from __future__ import annotations

import threading

import pytest

from proc_supervisor.runtime.outcome import OutcomeCell, ProcessOutcome


class TestProcessOutcome:
    """Test ProcessOutcome flags."""

    def test_unresolved(self):
        assert ProcessOutcome.UNRESOLVED.is_resolved is False
        assert ProcessOutcome.UNRESOLVED.is_forced is False

    def test_exited_is_not_forced(self):
        assert ProcessOutcome.EXITED.is_resolved is True
        assert ProcessOutcome.EXITED.is_forced is False

    @pytest.mark.parametrize("outcome", [ProcessOutcome.KILLED, ProcessOutcome.WATCHDOG])
    def test_forced_outcomes(self, outcome: ProcessOutcome):
        assert outcome.is_resolved is True
        assert outcome.is_forced is True


class TestOutcomeCell:
    """Test single-assignment semantics."""

    def test_starts_unresolved(self):
        cell = OutcomeCell()
        assert cell.value is ProcessOutcome.UNRESOLVED
        assert cell.is_resolved is False

    def test_first_writer_wins(self):
        cell = OutcomeCell()

        assert cell.try_resolve(ProcessOutcome.EXITED) is True
        assert cell.try_resolve(ProcessOutcome.WATCHDOG) is False
        assert cell.try_resolve(ProcessOutcome.KILLED) is False

        assert cell.value is ProcessOutcome.EXITED

    def test_resolving_to_unresolved_rejected(self):
        cell = OutcomeCell()
        with pytest.raises(ValueError):
            cell.try_resolve(ProcessOutcome.UNRESOLVED)
        assert cell.is_resolved is False

    def test_waiter_called_once_on_resolve(self):
        cell = OutcomeCell()
        seen: list[ProcessOutcome] = []
        cell.add_waiter(seen.append)

        cell.try_resolve(ProcessOutcome.KILLED)
        cell.try_resolve(ProcessOutcome.EXITED)

        assert seen == [ProcessOutcome.KILLED]

    def test_waiter_added_after_resolve_called_immediately(self):
        cell = OutcomeCell()
        cell.try_resolve(ProcessOutcome.EXITED)

        seen: list[ProcessOutcome] = []
        cell.add_waiter(seen.append)

        assert seen == [ProcessOutcome.EXITED]

    def test_removed_waiter_not_called(self):
        cell = OutcomeCell()
        seen: list[ProcessOutcome] = []
        cell.add_waiter(seen.append)
        cell.remove_waiter(seen.append)

        cell.try_resolve(ProcessOutcome.EXITED)

        assert seen == []

    def test_failing_waiter_does_not_block_others(self):
        cell = OutcomeCell()
        seen: list[ProcessOutcome] = []

        def broken(outcome: ProcessOutcome) -> None:
            raise RuntimeError("boom")

        cell.add_waiter(broken)
        cell.add_waiter(seen.append)

        assert cell.try_resolve(ProcessOutcome.WATCHDOG) is True
        assert seen == [ProcessOutcome.WATCHDOG]


class TestConcurrentResolution:
    """Race many writers against one cell."""

    @pytest.mark.timeout(30)
    def test_exactly_one_writer_wins(self):
        candidates = [ProcessOutcome.EXITED, ProcessOutcome.KILLED, ProcessOutcome.WATCHDOG]

        for _ in range(200):
            cell = OutcomeCell()
            notified: list[ProcessOutcome] = []
            cell.add_waiter(notified.append)

            barrier = threading.Barrier(len(candidates) * 3)
            wins: list[ProcessOutcome] = []
            wins_lock = threading.Lock()

            def attempt(outcome: ProcessOutcome) -> None:
                barrier.wait()
                if cell.try_resolve(outcome):
                    with wins_lock:
                        wins.append(outcome)

            threads = [
                threading.Thread(target=attempt, args=(outcome,))
                for outcome in candidates * 3
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            assert len(wins) == 1
            assert cell.value is wins[0]
            assert notified == wins
