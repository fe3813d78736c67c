"""
Unit tests for the batch transfer state machine.
"""

import pytest

from savesync.transfer.state import InvalidTransitionError, TransferRun, TransferState


def _to_internal(run):
    run.transition(TransferState.SCANNING)
    run.transition(TransferState.BATCHING)
    run.transition(TransferState.TRANSFERRING_INTERNAL)


@pytest.mark.unit
class TestTransferRun:
    """Test cases for TransferRun transitions."""

    def test_successful_run(self):
        run = TransferRun()
        _to_internal(run)

        assert run.finish() == TransferState.DONE
        assert run.history == [
            TransferState.IDLE,
            TransferState.SCANNING,
            TransferState.BATCHING,
            TransferState.TRANSFERRING_INTERNAL,
            TransferState.TRANSFERRING_EXTERNAL,
            TransferState.DONE,
        ]
        assert run.is_finished
        assert run.finished_at is not None

    def test_failure_ends_partial(self):
        run = TransferRun()
        _to_internal(run)
        run.mark_failure()
        run.transition(TransferState.TRANSFERRING_EXTERNAL)

        assert run.finish() == TransferState.FAILED_PARTIAL
        assert run.partial_failure

    def test_skipping_a_state_raises(self):
        run = TransferRun()

        with pytest.raises(InvalidTransitionError):
            run.transition(TransferState.BATCHING)

    def test_terminal_states_are_final(self):
        run = TransferRun()
        _to_internal(run)
        run.finish()

        with pytest.raises(InvalidTransitionError):
            run.transition(TransferState.SCANNING)

    def test_finish_before_transferring_raises(self):
        run = TransferRun()
        run.transition(TransferState.SCANNING)

        with pytest.raises(InvalidTransitionError):
            run.finish()

    def test_duration(self):
        run = TransferRun()
        _to_internal(run)
        run.finish()

        assert run.duration >= 0
        assert run.duration == run.finished_at - run.started_at
