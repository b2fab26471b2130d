from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from types import FrameType

from buildorch.util.log import get_logger

logger = get_logger(__name__)


class CancelSignal:
    """Thread-safe flag checked by the executor between task launches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def request(self) -> None:
        self._event.set()

    @property
    def requested(self) -> bool:
        return self._event.is_set()


@contextmanager
def cancel_on_signals(
    cancel: CancelSignal, signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)
) -> Iterator[CancelSignal]:
    """Turn the first delivery of ``signals`` into a cancel request.

    A second delivery falls through to the previous handler. Only installable
    from the main thread; elsewhere this is a no-op.
    """
    previous: dict[signal.Signals, object] = {}

    def _handler(signum: int, frame: FrameType | None) -> None:
        sig = signal.Signals(signum)
        if cancel.requested:
            handler = previous.get(sig)
            if callable(handler):
                handler(signum, frame)
            return
        logger.warning("received %s, cancelling pending tasks", sig.name)
        cancel.request()

    if threading.current_thread() is threading.main_thread():
        for sig in signals:
            previous[sig] = signal.signal(sig, _handler)
    try:
        yield cancel
    finally:
        for sig, handler in previous.items():
            with suppress(ValueError, TypeError):
                signal.signal(sig, handler)  # type: ignore[arg-type]
