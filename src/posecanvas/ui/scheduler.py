# src/posecanvas/ui/scheduler.py
from typing import Callable, Set

from PySide6 import QtCore

from ..core.scheduler import FrameScheduler


class QtFrameScheduler(FrameScheduler):
    """
    Per-frame callbacks on the Qt event loop.

    Each scheduled cycle is its own single-shot precise QTimer; cancel() stops
    and discards it so the callback can never fire after a stop.
    """

    def __init__(self, parent: QtCore.QObject = None, interval_ms: int = 0):
        self._parent = parent
        self.interval_ms = int(interval_ms)  # 0 = next event-loop turn; camera read() paces the loop
        self._pending: Set[QtCore.QTimer] = set()

    def schedule(self, callback: Callable[[], None]) -> QtCore.QTimer:
        timer = QtCore.QTimer(self._parent)
        timer.setSingleShot(True)
        timer.setTimerType(QtCore.Qt.PreciseTimer)
        timer.timeout.connect(lambda: self._fire(timer, callback))
        self._pending.add(timer)
        timer.start(self.interval_ms)
        return timer

    def cancel(self, handle: QtCore.QTimer) -> None:
        if handle in self._pending:
            handle.stop()
            self._pending.discard(handle)
            handle.deleteLater()

    def _fire(self, timer: QtCore.QTimer, callback: Callable[[], None]) -> None:
        if timer not in self._pending:
            return  # cancelled after the timeout was already queued
        self._pending.discard(timer)
        timer.deleteLater()
        callback()
