"""
Process lifecycle helpers.

Converts termination signals into an exception raised in the main thread so
that every ``finally`` block and context manager on the stack unwinds, which
is what releases the credential scope when a run is interrupted.
"""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Sequence

from loguru import logger

from repo_sync.core.exceptions import Interrupted

HANDLED_SIGNALS = tuple(
    sig
    for sig in (
        getattr(signal, "SIGINT", None),
        getattr(signal, "SIGTERM", None),
        getattr(signal, "SIGHUP", None),
    )
    if sig is not None
)


def _raise_interrupted(signum, frame):
    raise Interrupted(signum)


@contextmanager
def interrupt_guard(signals: Sequence[int] = HANDLED_SIGNALS) -> Iterator[None]:
    """Raise ``Interrupted`` on the given signals while the block runs.

    Previous handlers are restored on exit. Outside the main thread signal
    handlers cannot be installed, so the guard is a no-op there.
    """
    if threading.current_thread() is not threading.main_thread():
        logger.debug("interrupt_guard outside main thread; signals not intercepted")
        yield
        return

    previous: Dict[int, object] = {}
    try:
        for sig in signals:
            previous[sig] = signal.signal(sig, _raise_interrupted)
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
