# src/posecanvas/core/scheduler.py
from typing import Any, Callable


class FrameScheduler:
    """
    Host per-frame callback mechanism used by the detection loop.

    ``schedule`` registers ``callback`` to run once on the next frame tick and
    returns a handle; ``cancel`` must deregister that handle so the callback
    never fires. Cancelling an already-fired or unknown handle is a no-op.
    """

    def schedule(self, callback: Callable[[], None]) -> Any:
        raise NotImplementedError

    def cancel(self, handle: Any) -> None:
        raise NotImplementedError
