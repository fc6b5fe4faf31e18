"""
WebSocket session transport.

States: disconnected → connecting → connected → {disconnected, error}.
A close that is not a normal closure (1000) schedules exactly one
reconnect after a fixed delay. An application-level heartbeat keeps the
connection alive while connected.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Union

import websockets

from chat_widget.config import DEFAULT_HEARTBEAT_INTERVAL_MS, DEFAULT_RECONNECT_DELAY_MS
from chat_widget.errors import ConnectionError, ProtocolError
from chat_widget.models.envelope import Envelope
from chat_widget.models.events import InboundKind, OutboundKind, normalize_kind
from chat_widget.models.session import ConnectionStatus, SessionState
from chat_widget.transport.envelope import build_envelope, decode_envelope, encode_envelope

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
DEFAULT_OPEN_TIMEOUT_S = 10.0

EnvelopeHandler = Callable[[Envelope], None]
StatusHandler = Callable[[ConnectionStatus], None]


class SessionTransport:
    def __init__(
        self,
        url: str,
        on_status_change: Optional[StatusHandler] = None,
        heartbeat_interval_ms: int = DEFAULT_HEARTBEAT_INTERVAL_MS,
        reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT_S,
    ):
        self._url = url
        self._on_status_change = on_status_change
        self._heartbeat_interval = heartbeat_interval_ms / 1000
        self._reconnect_delay = reconnect_delay_ms / 1000
        self._open_timeout = open_timeout

        self._status = ConnectionStatus.DISCONNECTED
        self._session_id: Optional[str] = None
        self._ws: Optional[Any] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._heartbeat_handle: Optional[asyncio.TimerHandle] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._envelope_handlers: list[EnvelopeHandler] = []
        self._pending_sends: set[asyncio.Task[None]] = set()
        self._connected_event = asyncio.Event()
        self._closing = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED and self._ws is not None

    @property
    def state(self) -> SessionState:
        return SessionState(status=self._status, session_id=self._session_id)

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def add_envelope_handler(self, handler: EnvelopeHandler) -> Callable[[], None]:
        """Add an inbound envelope handler. Returns a cleanup function."""
        self._envelope_handlers.append(handler)

        def remove() -> None:
            try:
                self._envelope_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    # -- lifecycle ---------------------------------------------------------

    def connect(self) -> None:
        """Open the socket. Only effective from `disconnected` or `error`.

        Must be called with a running event loop; the open runs as a task.
        """
        if self._status not in (ConnectionStatus.DISCONNECTED, ConnectionStatus.ERROR):
            logger.debug("connect() ignored in state %s", self._status.value)
            return
        loop = asyncio.get_running_loop()
        self._closing = False
        self._cancel_reconnect()
        self._set_status(ConnectionStatus.CONNECTING)
        self._task = loop.create_task(self._run())

    async def disconnect(self) -> None:
        """Close the socket and cancel all timers.

        The state change itself comes from the close handler. No reconnect
        follows, whatever close code the socket ends with.
        """
        self._closing = True
        self._clear_timers()
        task = self._task
        if self._ws is not None:
            try:
                await self._ws.close(NORMAL_CLOSURE)
            except (OSError, websockets.WebSocketException) as e:
                logger.warning("Error closing socket: %s", e)
        elif task is not None and not task.done():
            task.cancel()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def wait_until_connected(self, timeout: float = 15.0) -> None:
        if self.connected:
            return
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError(f"Timed out waiting for connection to {self._url} after {timeout}s")

    async def _run(self) -> None:
        try:
            ws = await websockets.connect(self._url, ping_interval=None, open_timeout=self._open_timeout)
        except asyncio.CancelledError:
            self._handle_close(NORMAL_CLOSURE, "connect cancelled")
            raise
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            # A failed open reports error, then an abnormal close.
            self._handle_error(e)
            self._handle_close(ABNORMAL_CLOSURE, str(e))
            return

        self._ws = ws
        self._handle_open()
        close_code: Optional[int] = None
        try:
            async for raw in ws:
                self._handle_message(raw)
        except websockets.ConnectionClosedError as e:
            self._handle_error(e)
        except asyncio.CancelledError:
            close_code = NORMAL_CLOSURE
            raise
        finally:
            if close_code is None:
                close_code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
            self._ws = None
            self._handle_close(close_code, getattr(ws, "close_reason", None) or "")

    # -- socket events -----------------------------------------------------

    def _handle_open(self) -> None:
        logger.info("WebSocket connection established: %s", self._url)
        self._set_status(ConnectionStatus.CONNECTED)
        self._schedule_heartbeat()

    def _handle_message(self, raw: Union[str, bytes]) -> None:
        try:
            envelope = decode_envelope(raw)
        except ProtocolError as e:
            logger.warning("Dropping malformed envelope: %s", e)
            return

        logger.debug("Received %s", envelope.kind)
        if normalize_kind(envelope.kind) == InboundKind.CONNECTION_ESTABLISHED:
            self._session_id = envelope.session_id
            logger.info("Session established: %s", self._session_id)
            return

        for handler in list(self._envelope_handlers):
            try:
                handler(envelope)
            except Exception:
                logger.exception("Envelope handler failed for %s", envelope.kind)

    def _handle_close(self, code: int, reason: str = "") -> None:
        self._clear_timers()
        logger.info("WebSocket connection closed: %s %s", code, reason)
        self._set_status(ConnectionStatus.DISCONNECTED)
        if code != NORMAL_CLOSURE and not self._closing:
            loop = asyncio.get_running_loop()
            self._reconnect_handle = loop.call_later(self._reconnect_delay, self._reconnect)
            logger.info("Reconnecting in %.1fs", self._reconnect_delay)

    def _handle_error(self, error: BaseException) -> None:
        logger.error("WebSocket error: %s", error)
        self._clear_timers()
        self._set_status(ConnectionStatus.ERROR)

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        self.connect()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        if status is ConnectionStatus.CONNECTED:
            self._connected_event.set()
        else:
            self._connected_event.clear()
        if self._on_status_change is not None:
            try:
                self._on_status_change(status)
            except Exception:
                logger.exception("Status change callback failed for %s", status.value)

    # -- timers ------------------------------------------------------------

    def _schedule_heartbeat(self) -> None:
        loop = asyncio.get_running_loop()
        self._heartbeat_handle = loop.call_later(self._heartbeat_interval, self._heartbeat_tick)

    def _heartbeat_tick(self) -> None:
        self._heartbeat_handle = None
        if not self.connected:
            return
        self._write(build_envelope(OutboundKind.HEARTBEAT, self._session_id))
        self._schedule_heartbeat()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _clear_timers(self) -> None:
        if self._heartbeat_handle is not None:
            self._heartbeat_handle.cancel()
            self._heartbeat_handle = None
        self._cancel_reconnect()

    # -- outbound ----------------------------------------------------------

    def send_message(self, message: str) -> bool:
        return self._send(OutboundKind.CHAT_MESSAGE, "send message", message=message.strip())

    def send_image_message(self, message: str, image_url: str) -> bool:
        return self._send(
            OutboundKind.IMAGE_MESSAGE, "send image message",
            message=message.strip(), imageUrl=image_url,
        )

    def submit_user_details(self, data: dict[str, Any]) -> bool:
        return self._send(OutboundKind.USER_DETAILS_SUBMIT, "submit user details", data=data)

    def notify_form_cancelled(self) -> bool:
        return self._send(OutboundKind.USER_DETAILS_CANCELLED, "notify form cancelled")

    def set_preference(self, preference: str, enabled: bool) -> bool:
        return self._send(OutboundKind.SET_PREFERENCE, "set preference", preference=preference, enabled=enabled)

    def _send(self, kind: str, action: str, **fields: Any) -> bool:
        """Write immediately or reject; never queues."""
        if not self.connected:
            logger.error("Cannot %s: WebSocket not connected", action)
            return False
        self._write(build_envelope(kind, self._session_id, **fields))
        logger.debug("Sent %s", kind)
        return True

    def _write(self, envelope: Envelope) -> None:
        ws = self._ws
        data = encode_envelope(envelope)

        async def _do_send() -> None:
            try:
                await ws.send(data)  # type: ignore[union-attr]
            except Exception as e:
                logger.error("Send failed for %s: %s", envelope.kind, e)

        task = asyncio.get_running_loop().create_task(_do_send())
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)
