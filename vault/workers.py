"""
Background execution of store operations.

Repository calls block on SQLite, so the view model submits them here. Each
submission runs on a QThreadPool thread and reports back through queued
signals, which puts every callback on the thread that owns the handle (the
Qt main thread in the application).
"""

import logging
from typing import Any, Callable, Optional, Set

from PyQt5.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal, pyqtSlot

from . import config

logger = logging.getLogger(__name__)


class TaskSignals(QObject):
    """Signals emitted by a Task; QRunnable cannot emit on its own."""

    finished = pyqtSignal(object)
    error = pyqtSignal(object)


class Task(QRunnable):
    """Runs one callable on a pool thread."""

    def __init__(self, fn: Callable[[], Any], signals: TaskSignals, name: str = ""):
        super().__init__()
        self.fn = fn
        self.signals = signals
        self.name = name or getattr(fn, "__name__", "task")

    def run(self):
        """Run the callable and report its result or exception."""
        try:
            result = self.fn()
            self.signals.finished.emit(result)
        except Exception as e:
            logger.debug(f"Task {self.name} raised {type(e).__name__}: {e}")
            self.signals.error.emit(e)


class TaskHandle(QObject):
    """
    Cancellation handle for one submitted task.

    A cancelled handle drops the late result: none of its callbacks run.
    """

    def __init__(self, name: str,
                 on_success: Optional[Callable[[Any], None]] = None,
                 on_error: Optional[Callable[[Exception], None]] = None,
                 on_done: Optional[Callable[[], None]] = None,
                 release: Optional[Callable[['TaskHandle'], None]] = None):
        super().__init__()
        self.name = name
        self._on_success = on_success
        self._on_error = on_error
        self._on_done = on_done
        self._release = release
        self.signals = TaskSignals()
        self.signals.finished.connect(self._handle_finished)
        self.signals.error.connect(self._handle_error)
        self.cancelled = False
        self.done = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.done)

    def cancel(self) -> None:
        if self.done:
            return
        self.cancelled = True
        logger.debug(f"Task {self.name} cancelled")

    @pyqtSlot(object)
    def _handle_finished(self, result):
        try:
            if not self.cancelled and self._on_success is not None:
                self._on_success(result)
        finally:
            self._finish()

    @pyqtSlot(object)
    def _handle_error(self, exc):
        try:
            if not self.cancelled:
                if self._on_error is not None:
                    self._on_error(exc)
                else:
                    logger.error(f"Task {self.name} failed: {exc}")
        finally:
            self._finish()

    def _finish(self) -> None:
        self.done = True
        try:
            if not self.cancelled and self._on_done is not None:
                self._on_done()
        finally:
            if self._release is not None:
                self._release(self)


class TaskRunner:
    """Owns the thread pool and keeps live handles referenced until they finish."""

    def __init__(self, max_threads: int = config.WORKER_THREAD_COUNT, pool: Optional[QThreadPool] = None):
        self.pool = pool or QThreadPool()
        self.pool.setMaxThreadCount(max_threads)
        self._handles: Set[TaskHandle] = set()

    def submit(self, fn: Callable[[], Any],
               on_success: Optional[Callable[[Any], None]] = None,
               on_error: Optional[Callable[[Exception], None]] = None,
               on_done: Optional[Callable[[], None]] = None,
               name: str = "") -> TaskHandle:
        """
        Run `fn` in the background.
        Args:
            fn: Blocking callable, usually a repository method
            on_success: Called with the return value
            on_error: Called with the raised exception
            on_done: Called after either of the above
            name: Label used in log messages
        Returns:
            Handle that can cancel delivery of the result
        """
        handle = TaskHandle(
            name or getattr(fn, "__name__", "task"),
            on_success=on_success,
            on_error=on_error,
            on_done=on_done,
            release=self._handles.discard,
        )
        self._handles.add(handle)
        self.pool.start(Task(fn, handle.signals, handle.name))
        return handle

    @property
    def pending(self) -> int:
        return len(self._handles)

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until every running task returned. Queued callbacks still need the event loop."""
        return self.pool.waitForDone(msecs)

    def shutdown(self, msecs: int = 5000) -> None:
        for handle in list(self._handles):
            handle.cancel()
        self._handles.clear()
        if not self.pool.waitForDone(msecs):
            logger.warning("Background tasks still running at shutdown")
