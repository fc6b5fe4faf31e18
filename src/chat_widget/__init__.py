"""
chat-widget: embeddable conversational-UI client.

WebSocket session transport, message routing, stream coalescing and
incremental text reveal for a chat widget.
"""

from chat_widget.client import ChatWidget, init_widget
from chat_widget.config import WidgetConfig, load_config
from chat_widget.errors import WidgetError, ProtocolError, ConfigError, ConnectionError
from chat_widget.models.events import InboundKind, OutboundKind, WidgetSignal, MessageKind
from chat_widget.models.reveal import RevealSpeed
from chat_widget.models.session import ConnectionStatus
from chat_widget.reveal import RevealScheduler
from chat_widget.router import MessageRouter
from chat_widget.streaming import StreamCoalescer
from chat_widget.transport.websocket import SessionTransport

__version__ = "0.1.0"
__all__ = [
    "ChatWidget",
    "init_widget",
    "WidgetConfig",
    "load_config",
    "WidgetError",
    "ProtocolError",
    "ConfigError",
    "ConnectionError",
    "InboundKind",
    "OutboundKind",
    "WidgetSignal",
    "MessageKind",
    "RevealSpeed",
    "ConnectionStatus",
    "RevealScheduler",
    "MessageRouter",
    "StreamCoalescer",
    "SessionTransport",
]
