"""Change listeners for the registry aggregates."""

from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ChangeListeners:
    """Ordered set of zero-argument callbacks fired after a registry mutates.

    A failing listener is logged and does not stop the others; the mutation
    that triggered the notification has already been applied.
    """

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._listeners: List[Listener] = []

    def add(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Error in %s change listener", self._owner)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
