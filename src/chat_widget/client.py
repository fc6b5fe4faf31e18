"""
ChatWidget: the handle returned by init_widget().

Wires transport → router → signals → presentation surface / reveal
scheduler for one embedded widget. The host keeps the handle and calls
destroy() when removing the widget.
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Union

from chat_widget.config import WidgetConfig, load_config
from chat_widget.errors import ConnectionError
from chat_widget.models.events import MessageKind, MessageUpdate, NewMessage, WidgetEvent, WidgetSignal
from chat_widget.models.session import ConnectionStatus
from chat_widget.reveal import RevealScheduler
from chat_widget.router import MessageRouter, new_message_id
from chat_widget.signals import SignalChannel
from chat_widget.streaming import StreamCoalescer
from chat_widget.surface import PresentationSurface, VoiceModule
from chat_widget.transport.websocket import SessionTransport

logger = logging.getLogger(__name__)

CONNECTION_LOST_NOTICE = "Connection lost. Trying to reconnect..."
LOCAL_REPLY_FAILED_NOTICE = "Sorry, something went wrong while generating a reply."
SIMULATED_REPLY_DELAY_S = 1.0


class ChatWidget:
    def __init__(
        self,
        config: WidgetConfig,
        surface: PresentationSurface,
        voice: Optional[VoiceModule] = None,
    ):
        self.config = config
        self.voice = voice
        self._surface = surface

        self.signals = SignalChannel()
        self.router = MessageRouter(self.signals, StreamCoalescer(config.streaming_threshold))
        self.scheduler = RevealScheduler(
            speed=config.speed,
            speed_multiplier=config.speed_multiplier,
            use_markdown=config.enable_markdown,
        )

        self.transport: Optional[SessionTransport] = None
        self._remove_envelope_handler = None
        if config.server_url:
            self.transport = SessionTransport(
                config.server_url,
                on_status_change=self._on_status_change,
                heartbeat_interval_ms=config.heartbeat_interval_ms,
                reconnect_delay_ms=config.reconnect_delay_ms,
            )
            self._remove_envelope_handler = self.transport.add_envelope_handler(self.router.handle)

        self._remove_signal_handler = self.signals.add_handler(self._on_signal)
        self._status = ConnectionStatus.DISCONNECTED
        self._notice_shown = False
        self._local_tasks: set[asyncio.Task[None]] = set()
        self._destroyed = False

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def connected(self) -> bool:
        return self.transport is not None and self.transport.connected

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def start(self) -> "ChatWidget":
        """Render the greeting and open the connection (if configured)."""
        if self.config.initial_message:
            self._surface.render_message(MessageKind.ASSISTANT, self.config.initial_message, new_message_id(), False, False)
        self.open()
        return self

    def open(self) -> None:
        if self.transport is not None and not self._destroyed:
            self.transport.connect()

    async def wait_until_connected(self, timeout: float = 15.0) -> None:
        if self.transport is None:
            raise ConnectionError("No serverUrl configured")
        await self.transport.wait_until_connected(timeout)

    # -- outbound ----------------------------------------------------------

    def submit(self, text: str) -> bool:
        """Handle a user-typed message. Blank input is ignored."""
        message = text.strip()
        if not message:
            return False
        self.add_message(MessageKind.USER, message)
        if self.transport is None:
            self._spawn(self._simulate_response(message))
            return True
        sent = self.transport.send_message(message)
        if sent:
            self._surface.show_loading_indicator()
        return sent

    def send_image(self, message: str, image_url: str) -> bool:
        if self.transport is None:
            logger.error("Cannot send image message: no serverUrl configured")
            return False
        return self.transport.send_image_message(message, image_url)

    def submit_user_details(self, data: dict[str, Any]) -> bool:
        self._surface.show_loading_indicator()
        if self.transport is None:
            self._spawn(self._simulate_details_reply(data))
            return True
        sent = self.transport.submit_user_details(data)
        if not sent:
            self._surface.hide_loading_indicator()
        return sent

    def cancel_user_details(self) -> bool:
        if self.transport is None:
            return False
        return self.transport.notify_form_cancelled()

    def set_preference(self, preference: str, enabled: bool) -> bool:
        if self.transport is None:
            logger.error("Cannot set preference: no serverUrl configured")
            return False
        return self.transport.set_preference(preference, enabled)

    # -- rendering ---------------------------------------------------------

    def add_message(
        self,
        kind: str,
        content: str,
        *,
        id: Optional[str] = None,
        is_html: bool = False,
        skip_reveal: bool = False,
        is_streaming: bool = False,
    ) -> str:
        """Render a message; assistant text is revealed incrementally."""
        message_id = id or new_message_id()
        reveal = (
            kind == MessageKind.ASSISTANT
            and self.config.enable_reveal
            and not (is_streaming or is_html or skip_reveal)
        )
        self._surface.render_message(kind, "" if reveal else content, message_id, is_streaming, is_html)
        if reveal:
            target = self._surface.reveal_target(message_id)
            if target is None:
                logger.warning("No reveal target for %s, rendering in full", message_id)
                self._surface.update_streaming_content(message_id, content, True, False)
            else:
                self.scheduler.reveal(
                    target, content,
                    on_complete=lambda: self.signals.emit(WidgetSignal.REVEAL_COMPLETE, message_id),
                )
        return message_id

    def stream_update(self, message_id: str, content: str, is_complete: bool = False, is_html: bool = False) -> None:
        """Feed a locally produced partial reply through the coalescer."""
        self.router.stream_update(message_id, content, is_complete, is_html)

    def _on_signal(self, event: WidgetEvent) -> None:
        if event.type == WidgetSignal.NEW_MESSAGE:
            msg: NewMessage = event.data
            self._surface.hide_loading_indicator()
            self.add_message(
                msg.kind, msg.content, id=msg.id, is_html=msg.is_html,
                skip_reveal=msg.skip_reveal, is_streaming=msg.is_streaming,
            )
        elif event.type == WidgetSignal.UPDATE_MESSAGE:
            update: MessageUpdate = event.data
            self._surface.update_streaming_content(update.id, update.content, update.is_complete, update.is_html)
        elif event.type == WidgetSignal.SHOW_USER_FORM:
            self._surface.show_form_surface()
        elif event.type == WidgetSignal.HIDE_LOADER:
            self._surface.hide_loading_indicator()

    def _on_status_change(self, status: ConnectionStatus) -> None:
        logger.info("WebSocket status: %s", status.value)
        self._status = status
        self.signals.emit(WidgetSignal.STATUS_CHANGED, status)
        if status is ConnectionStatus.CONNECTED:
            self._notice_shown = False
            return
        self.router.clear_thinking()
        if status in (ConnectionStatus.DISCONNECTED, ConnectionStatus.ERROR) and not self._notice_shown and not self._destroyed:
            self._notice_shown = True
            self.add_message(MessageKind.SYSTEM, CONNECTION_LOST_NOTICE)

    # -- local replies -----------------------------------------------------

    async def _simulate_response(self, message: str) -> None:
        self._surface.show_loading_indicator()
        try:
            await asyncio.sleep(SIMULATED_REPLY_DELAY_S)
            self._surface.hide_loading_indicator()
            if "form" in message.lower():
                self.signals.emit(WidgetSignal.SHOW_USER_FORM)
            else:
                self.add_message(
                    MessageKind.ASSISTANT,
                    f'I received your message: "{message}". This is a simulated response.',
                )
        except Exception:
            logger.exception("Simulated reply failed")
            self._surface.hide_loading_indicator()
            self.add_message(MessageKind.SYSTEM, LOCAL_REPLY_FAILED_NOTICE)

    async def _simulate_details_reply(self, data: dict[str, Any]) -> None:
        await asyncio.sleep(SIMULATED_REPLY_DELAY_S)
        self._surface.hide_loading_indicator()
        self.add_message(
            MessageKind.ASSISTANT,
            f"Thank you, {data.get('name', '')}! Your details have been submitted.",
        )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._local_tasks.add(task)
        task.add_done_callback(self._local_tasks.discard)

    # -- voice -------------------------------------------------------------

    async def toggle_voice(self) -> bool:
        """Start or end the voice conversation. Returns whether it is active."""
        if self.voice is None:
            logger.warning("Voice toggled but no voice module is attached")
            return False
        if self.voice.active:
            await self.voice.end_conversation()
        else:
            await self.voice.start_conversation()
        return self.voice.active

    # -- teardown ----------------------------------------------------------

    async def destroy(self) -> None:
        """Tear down the widget. Safe to call more than once."""
        if self._destroyed:
            return
        self._destroyed = True
        logger.info("Destroying chat widget")

        if self.voice is not None and self.voice.active:
            try:
                await self.voice.end_conversation()
            except Exception as e:
                logger.warning("Error ending voice conversation: %s", e)

        self.scheduler.cancel_all()
        self.router.cancel_pending()
        for task in list(self._local_tasks):
            task.cancel()
        self._local_tasks.clear()

        if self._remove_envelope_handler is not None:
            self._remove_envelope_handler()
            self._remove_envelope_handler = None
        self._remove_signal_handler()

        if self.transport is not None:
            await self.transport.disconnect()
        self.signals.clear()


def init_widget(
    config: Union[WidgetConfig, dict[str, Any], None],
    surface: PresentationSurface,
    voice: Optional[VoiceModule] = None,
) -> ChatWidget:
    """Create and start a widget. Call from a running event loop."""
    if not isinstance(config, WidgetConfig):
        config = load_config(config)
    return ChatWidget(config, surface, voice).start()
