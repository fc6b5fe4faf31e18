"""
Per-widget signal channel between router, transport and presentation.
"""

import logging
from typing import Any, Callable, Optional

from chat_widget.models.events import WidgetEvent

logger = logging.getLogger(__name__)

SignalHandler = Callable[[WidgetEvent], None]


class SignalChannel:
    def __init__(self) -> None:
        self._handlers: list[SignalHandler] = []

    def add_handler(self, handler: SignalHandler) -> Callable[[], None]:
        """Add a handler. Returns a cleanup function."""
        self._handlers.append(handler)

        def remove() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def clear(self) -> None:
        self._handlers.clear()

    def emit(self, signal: str, data: Optional[Any] = None) -> None:
        event = WidgetEvent(signal, data)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Signal handler failed for %s", signal)
