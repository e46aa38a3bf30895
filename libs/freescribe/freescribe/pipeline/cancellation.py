"""Cooperative cancellation for in-flight inference calls."""

from __future__ import annotations

import threading

from freescribe.exceptions import InferenceCancelled


class CancellationToken:
    """Set from the orchestrating side, checked by the worker at safe points."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise InferenceCancelled("inference cancelled")
