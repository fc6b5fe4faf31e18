"""
Message router: maps inbound envelope kinds to widget signals.

- Thinking start/complete are idempotent.
- Backend `error` envelopes are logged, never shown.
- `chat_stream` partials go through the StreamCoalescer before an
  update-message signal is emitted.
"""

import asyncio
import html
import logging
import uuid
from typing import Any, Callable, Optional

from chat_widget.models.envelope import Envelope
from chat_widget.models.events import InboundKind, MessageKind, MessageUpdate, NewMessage, WidgetSignal, normalize_kind
from chat_widget.signals import SignalChannel
from chat_widget.streaming import StreamCoalescer, StreamTracker

logger = logging.getLogger(__name__)

USER_DETAILS_FUNCTION = "displayUserDetailsForm"
DEFAULT_BOOKING_MESSAGE = "Your booking is confirmed."
BOOKING_LINK_TEXT = "Access your booking"
BOOKING_LINK_DELAY_S = 0.1


def new_message_id(prefix: str = "message") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def booking_link_html(url: str) -> str:
    return (
        f'<a href="{html.escape(url, quote=True)}" target="_blank" '
        f'class="booking-link">{BOOKING_LINK_TEXT}</a>'
    )


class MessageRouter:
    def __init__(
        self,
        channel: SignalChannel,
        coalescer: Optional[StreamCoalescer] = None,
        link_delay_s: float = BOOKING_LINK_DELAY_S,
    ):
        self._channel = channel
        self._coalescer = coalescer or StreamCoalescer()
        self._streams = StreamTracker()
        self._link_delay_s = link_delay_s
        self._thinking = False
        self._pending: set[asyncio.TimerHandle] = set()
        self._handlers: dict[str, Callable[[Envelope], None]] = {
            InboundKind.THINKING_STARTED: self._on_thinking_start,
            InboundKind.THINKING_START: self._on_thinking_start,
            InboundKind.THINKING_COMPLETE: self._on_thinking_complete,
            InboundKind.ERROR: self._on_error,
            InboundKind.IDENTIFICATION_REQUEST: self._on_identification_request,
            InboundKind.FUNCTION_CALL: self._on_function,
            InboundKind.FUNCTION_RESULT: self._on_function,
            InboundKind.USER_DETAILS_FORM: self._on_user_details_form,
            InboundKind.BOOKING_CONFIRMED: self._on_booking_confirmed,
            InboundKind.CHAT_STREAM: self._on_chat_stream,
        }

    @property
    def thinking(self) -> bool:
        return self._thinking

    @property
    def coalescer(self) -> StreamCoalescer:
        return self._coalescer

    def handle(self, envelope: Envelope) -> None:
        kind = normalize_kind(envelope.kind)

        if kind == InboundKind.CHAT_RESPONSE or not kind:
            content = envelope.get("message") or envelope.get("content")
            if isinstance(content, str) and content:
                self._on_assistant_message(content)
                return
            if kind:
                logger.warning("Assistant message with no content received")
                return

        handler = self._handlers.get(kind)
        if handler is None:
            logger.info("Unhandled message type: %s", kind or "<none>")
            return
        handler(envelope)

    # -- thinking ----------------------------------------------------------

    def start_thinking(self) -> None:
        if self._thinking:
            return
        self._thinking = True
        self._channel.emit(WidgetSignal.THINKING_START)

    def clear_thinking(self) -> None:
        if not self._thinking:
            return
        self._thinking = False
        self._channel.emit(WidgetSignal.THINKING_COMPLETE)

    def _on_thinking_start(self, _envelope: Envelope) -> None:
        self.start_thinking()

    def _on_thinking_complete(self, _envelope: Envelope) -> None:
        self.clear_thinking()

    # -- logged only -------------------------------------------------------

    def _on_error(self, envelope: Envelope) -> None:
        logger.warning("Server error: %s", envelope.get("message"))

    def _on_identification_request(self, envelope: Envelope) -> None:
        logger.info("Identification requested: %s", envelope.get("requestedInfo"))

    # -- messages ----------------------------------------------------------

    def _on_assistant_message(self, content: str) -> None:
        self.clear_thinking()
        self._channel.emit(WidgetSignal.HIDE_LOADER)
        self._emit_message(content)

    def _on_function(self, envelope: Envelope) -> None:
        name = envelope.get("name")
        if name == USER_DETAILS_FUNCTION:
            self._channel.emit(WidgetSignal.SHOW_USER_FORM)
        logger.info("Function %s: %s", envelope.kind, name)

    def _on_user_details_form(self, _envelope: Envelope) -> None:
        self._channel.emit(WidgetSignal.SHOW_USER_FORM)

    def _on_booking_confirmed(self, envelope: Envelope) -> None:
        self._channel.emit(WidgetSignal.HIDE_LOADER)
        self.clear_thinking()
        self._emit_message(envelope.get("message") or DEFAULT_BOOKING_MESSAGE, skip_reveal=True)

        link = envelope.get("bookingLink")
        if link:
            self._later(
                self._emit_message, booking_link_html(str(link)),
                is_html=True, skip_reveal=True, prefix="message-link",
            )

    def _emit_message(
        self,
        content: str,
        *,
        is_html: bool = False,
        skip_reveal: bool = False,
        prefix: str = "message",
    ) -> None:
        self._channel.emit(WidgetSignal.NEW_MESSAGE, NewMessage(
            kind=MessageKind.ASSISTANT,
            content=content,
            id=new_message_id(prefix),
            is_html=is_html,
            skip_reveal=skip_reveal,
        ))

    def _later(self, callback: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback(*args, **kwargs)
            return

        def fire() -> None:
            self._pending.discard(handle)
            callback(*args, **kwargs)

        handle = loop.call_later(self._link_delay_s, fire)
        self._pending.add(handle)

    def cancel_pending(self) -> None:
        for handle in self._pending:
            handle.cancel()
        self._pending.clear()

    # -- streaming ---------------------------------------------------------

    def _on_chat_stream(self, envelope: Envelope) -> None:
        message_id = envelope.get("messageId") or envelope.get("id")
        content = envelope.get("content")
        if not message_id or not isinstance(content, str):
            logger.warning("Dropping stream update without messageId/content")
            return
        self.stream_update(
            str(message_id), content,
            is_complete=bool(envelope.get("isComplete", False)),
            is_html=bool(envelope.get("isHtml", False)),
        )

    def stream_update(self, message_id: str, content: str, is_complete: bool = False, is_html: bool = False) -> None:
        """Route one partial (accumulated content) of a streaming reply."""
        if self._streams.finished(message_id):
            logger.debug("Dropping late partial for completed stream %s", message_id)
            return
        _message, created = self._streams.advance(message_id, content, is_complete)
        render = self._coalescer.should_render(message_id, content, is_complete)

        if created:
            self.clear_thinking()
            self._channel.emit(WidgetSignal.HIDE_LOADER)
            self._channel.emit(WidgetSignal.NEW_MESSAGE, NewMessage(
                kind=MessageKind.ASSISTANT, content=content, id=message_id,
                is_html=is_html, is_streaming=True,
            ))
            if not is_complete:
                return

        if render:
            self._channel.emit(WidgetSignal.UPDATE_MESSAGE, MessageUpdate(
                id=message_id, content=content, is_complete=is_complete, is_html=is_html,
            ))
