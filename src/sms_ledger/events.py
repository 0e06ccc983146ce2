"""Change notification for state owners.

The ledger, inbox, and debt tracker each derive from :class:`Observable`
and publish the name of the store slot they changed. The composition root
subscribes a persistence handler; tests subscribe recorders.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

Handler = Callable[[str], None]


class Observable:
    def __init__(self) -> None:
        self._subscribers: list[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        if handler not in self._subscribers:
            self._subscribers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    def _publish(self, slot: str) -> None:
        """Notify every subscriber that *slot* changed.

        The change has already happened when this runs, so a failing
        handler is logged and the remaining handlers still run.
        """
        logger.debug("%s changed", slot)
        for handler in list(self._subscribers):
            try:
                handler(slot)
            except Exception:
                logger.exception("Change handler %r failed for %s", handler, slot)
