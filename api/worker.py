"""
api/worker.py

Background execution for Mermaid Chart calls.

Every network call and interactive sign-in goes through one ``JobQueue``:
jobs run one at a time on a worker ``QThread`` and their results are
delivered back on the GUI thread, so session re-authentication never runs
twice concurrently.
"""

from __future__ import annotations

import traceback
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from debug_trace import trace, trace_exception


@dataclass
class _Job:
    label: str
    fn: Callable[[], Any]
    on_finished: Optional[Callable[[Any], None]] = None
    on_failed: Optional[Callable[[BaseException], None]] = None


class ApiWorker(QObject):
    """
    Runs one callable on a background thread.

    Signals:
        finished(object): Emitted with the callable's return value
        failed(object): Emitted with the raised exception
    """

    finished = pyqtSignal(object)
    failed = pyqtSignal(object)

    def __init__(self, fn: Callable[[], Any], label: str = ""):
        super().__init__()
        self.fn = fn
        self.label = label

    def run(self):
        """Execute the job."""
        try:
            result = self.fn()
        except Exception as e:
            trace(f"job {self.label} failed: {e}\n{traceback.format_exc()}", "JOB")
            self.failed.emit(e)
            return
        self.finished.emit(result)


class JobQueue(QObject):
    """
    Serial job runner. Callable as ``queue(fn, on_finished, on_failed)``.

    ``submit`` may be called from any thread; callbacks always run on the
    thread that owns the queue (the GUI thread).

    Signals:
        busy_changed(bool): True when the first job starts, False when the
            queue drains
    """

    busy_changed = pyqtSignal(bool)
    _submitted = pyqtSignal(object)

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._pending: Deque[_Job] = deque()
        self._current: Optional[_Job] = None
        self._thread: Optional[QThread] = None
        self._worker: Optional[ApiWorker] = None
        self._submitted.connect(self._enqueue)

    def __call__(self, fn, on_finished=None, on_failed=None) -> None:
        self.submit(getattr(fn, "__name__", "job"), fn, on_finished, on_failed)

    def submit(
        self,
        label: str,
        fn: Callable[[], Any],
        on_finished: Optional[Callable[[Any], None]] = None,
        on_failed: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        """Queue *fn*; exactly one of the callbacks runs when it completes."""
        self._submitted.emit(_Job(label, fn, on_finished, on_failed))

    def shutdown(self, timeout_ms: int = 3000) -> None:
        """Drop queued jobs and wait briefly for the running one."""
        self._pending.clear()
        if self._thread is not None:
            self._thread.quit()
            self._thread.wait(timeout_ms)

    # ------------------------------------------------------------------
    # Internals (GUI thread)
    # ------------------------------------------------------------------

    @pyqtSlot(object)
    def _enqueue(self, job: _Job):
        self._pending.append(job)
        trace(f"queued {job.label} ({len(self._pending)} waiting)", "JOB")
        if self._current is None:
            self.busy_changed.emit(True)
            self._start_next()

    def _start_next(self):
        if not self._pending:
            self._current = None
            self.busy_changed.emit(False)
            return

        self._current = self._pending.popleft()
        trace(f"start {self._current.label}", "JOB")

        self._thread = QThread()
        self._worker = ApiWorker(self._current.fn, self._current.label)
        self._worker.moveToThread(self._thread)

        self._thread.started.connect(self._worker.run)
        self._worker.finished.connect(self._on_finished)
        self._worker.failed.connect(self._on_failed)

        self._worker.finished.connect(self._thread.quit)
        self._worker.failed.connect(self._thread.quit)

        self._thread.finished.connect(self._on_thread_finished)
        self._thread.finished.connect(self._worker.deleteLater)
        self._thread.finished.connect(self._thread.deleteLater)

        self._thread.start()

    @pyqtSlot(object)
    def _on_finished(self, result: Any):
        job = self._current
        if job is None or job.on_finished is None:
            return
        try:
            job.on_finished(result)
        except Exception:
            trace_exception(f"Completion handler for {job.label} failed")

    @pyqtSlot(object)
    def _on_failed(self, error: BaseException):
        job = self._current
        if job is None:
            return
        if job.on_failed is None:
            trace(f"{job.label}: unhandled failure {error!r}", "JOB")
            return
        try:
            job.on_failed(error)
        except Exception:
            trace_exception(f"Failure handler for {job.label} failed")

    @pyqtSlot()
    def _on_thread_finished(self):
        self._thread = None
        self._worker = None
        self._start_next()
