"""
Stream coalescing for partial assistant replies.

Each partial update carries the accumulated content so far. Intermediate
updates are only rendered once the content length has moved by more than
``threshold`` characters since the last render; the first partial and the
completing update are always rendered.
"""

from collections import OrderedDict
from typing import Optional

from chat_widget.config import DEFAULT_STREAMING_THRESHOLD
from chat_widget.models.session import StreamingMessage

MAX_FINISHED_STREAMS = 256


class StreamCoalescer:
    def __init__(self, threshold: int = DEFAULT_STREAMING_THRESHOLD) -> None:
        self.threshold = threshold
        self._rendered: dict[str, int] = {}

    def last_rendered_length(self, message_id: str) -> Optional[int]:
        return self._rendered.get(message_id)

    def should_render(self, message_id: str, content: str, is_complete: bool) -> bool:
        last = self._rendered.get(message_id)
        render = is_complete or last is None or abs(len(content) - last) > self.threshold
        if is_complete:
            self._rendered.pop(message_id, None)
        elif render:
            self._rendered[message_id] = len(content)
        return render

    def reset(self, message_id: Optional[str] = None) -> None:
        if message_id is None:
            self._rendered.clear()
        else:
            self._rendered.pop(message_id, None)


class StreamTracker:
    """Active streaming messages by id, plus the most recently completed ids."""

    def __init__(self, max_finished: int = MAX_FINISHED_STREAMS) -> None:
        self._active: dict[str, StreamingMessage] = {}
        self._finished: OrderedDict[str, None] = OrderedDict()
        self._max_finished = max_finished

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._active

    def __len__(self) -> int:
        return len(self._active)

    def finished(self, message_id: str) -> bool:
        return message_id in self._finished

    def get(self, message_id: str) -> Optional[StreamingMessage]:
        return self._active.get(message_id)

    def advance(self, message_id: str, content: str, is_complete: bool) -> tuple[StreamingMessage, bool]:
        """Record a partial. Returns the message and whether it is new."""
        message = self._active.get(message_id)
        created = message is None
        if message is None:
            message = StreamingMessage(id=message_id)
            self._active[message_id] = message
        message.advance(len(content), is_complete)
        if message.is_complete:
            del self._active[message_id]
            self._finished[message_id] = None
            if len(self._finished) > self._max_finished:
                self._finished.popitem(last=False)
        return message, created
