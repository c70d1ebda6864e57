"""
Progress tracking and cancellation for BayesPower runs.

A ``ProgressReporter`` is handed to ``SimulationRunner.run``. The runner
records every finished ``ReplicationResult`` on it and asks it whether the
user has requested cancellation before issuing the next replication. The
reporter keeps the completed and failed tallies and forwards them to a
display callback.

Display callbacks are called as ``callback(completed, total)``; callbacks
that declare a ``failed`` parameter also receive the failure tally as
``failed=<count>``.
"""

import inspect
import sys
from typing import Callable, Optional, Tuple


class SimulationCancelled(Exception):
    """Raised when a sample-size sweep is cancelled by the user."""


def _wants_failures(callback) -> bool:
    try:
        parameters = inspect.signature(callback).parameters
    except (TypeError, ValueError):
        return False
    return "failed" in parameters


class ProgressReporter:
    """Replication tally shared by the runner and the display.

    Args:
        total: Replications expected over the whole analysis (a sample-size
            sweep shares one reporter across sizes).
        callback: Display callable, or ``None`` to only keep the tallies.
        update_every: Emit every this many recorded replications; defaults
            to 0.5% of *total*. The last replication always emits.
        cancel_check: Callable polled by ``cancel_requested``.
    """

    def __init__(
        self,
        total: int,
        callback: Optional[Callable[..., None]] = None,
        update_every: Optional[int] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ):
        self.total = total
        self.update_every = update_every or max(1, total // 200)
        self.cancel_check = cancel_check
        self._callback = callback
        self._with_failures = callback is not None and _wants_failures(callback)
        self._completed = 0
        self._failed = 0
        self._cancelled = False

    @property
    def current(self) -> int:
        """Replications recorded so far."""
        return self._completed

    @property
    def failed(self) -> int:
        """Recorded replications that ended as tombstones."""
        return self._failed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _emit(self):
        if self._callback is None:
            return
        if self._with_failures:
            self._callback(self._completed, self.total, failed=self._failed)
        else:
            self._callback(self._completed, self.total)

    def start(self):
        self._completed = self._failed = 0
        self._cancelled = False
        self._emit()

    def record(self, result) -> None:
        """Count one finished replication (a ``ReplicationResult``)."""
        self._completed += 1
        if result.failed:
            self._failed += 1
        if self._completed % self.update_every == 0 or self._completed >= self.total:
            self._emit()

    def cancel_requested(self) -> bool:
        """Poll the cancel check; once it fires the answer stays ``True``."""
        if not self._cancelled and self.cancel_check is not None:
            self._cancelled = bool(self.cancel_check())
        return self._cancelled

    def snapshot(self) -> Tuple[int, int]:
        return self._completed, self._failed

    def restore(self, snapshot: Tuple[int, int]):
        """Rewind the tallies, e.g. before re-running replications sequentially."""
        self._completed, self._failed = snapshot

    def finish(self):
        """Close the display at ``total``; a cancelled run keeps its count."""
        if not self._cancelled and self._completed < self.total:
            self._completed = self.total
            self._emit()


class PrintReporter:
    """Single-line stderr display, e.g. ``Progress:  45.2% (452/1000 replications, 3 failed)``."""

    def __init__(self, stream=None):
        self.stream = stream

    def __call__(self, current: int, total: int, failed: int = 0):
        if total <= 0:
            return
        stream = self.stream if self.stream is not None else sys.stderr
        detail = f"{current}/{total} replications" + (f", {failed} failed" if failed else "")
        end = "\n" if current >= total else ""
        stream.write(f"\rProgress: {100.0 * current / total:5.1f}% ({detail}){end}")
        stream.flush()


class TqdmReporter:
    """tqdm bar with the failure tally as a postfix (tqdm is imported on first use).

    Usage::

        from bayespower.progress import TqdmReporter
        model.find_power(target="treatment", progress_callback=TqdmReporter())
    """

    def __init__(self, **tqdm_kwargs):
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, current: int, total: int, failed: int = 0):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="rep", **self._tqdm_kwargs)
        if failed:
            self._bar.set_postfix(failed=failed, refresh=False)
        if current > self._bar.n:
            self._bar.update(current - self._bar.n)
        if current >= total:
            self._bar.close()
            self._bar = None
