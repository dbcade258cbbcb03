"""Commit queue that publishes write sequences strictly in order."""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass
class SequenceCounter:
    """Holds the last sequence number visible to readers."""

    last_sequence: int = 0


class PipelineCommitQueue:
    """Lets concurrent writers publish their sequence ranges in order.

    A writer that covers ``(last_commit_sequence, commit_sequence]`` may only
    publish once the counter has reached ``last_commit_sequence``.
    """

    def __init__(self, sequence: SequenceCounter):
        self.sequence = sequence
        self._cond = threading.Condition()
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def commit(self, last_commit_sequence: int, commit_sequence: int) -> None:
        """Wait for the preceding writers, then publish ``commit_sequence``."""
        with self._cond:
            if self.sequence.last_sequence == last_commit_sequence:
                self._publish(commit_sequence)
                return
            while (
                self.sequence.last_sequence != last_commit_sequence and not self._stopped
            ):
                self._cond.wait()
            if not self._stopped:
                self._publish(commit_sequence)

    def wait_pending_writers(self, commit_sequence: int) -> bool:
        """Block until ``commit_sequence`` is visible; True if the queue was stopped."""
        if self.sequence.last_sequence >= commit_sequence:
            return False
        with self._cond:
            while self.sequence.last_sequence < commit_sequence and not self._stopped:
                self._cond.wait()
            return self._stopped

    def stop(self) -> None:
        """Release every waiter; the database is shutting down."""
        with self._cond:
            self._stopped = True
            self._cond.notify_all()

    def _publish(self, commit_sequence: int) -> None:
        self.sequence.last_sequence = commit_sequence
        self._cond.notify_all()