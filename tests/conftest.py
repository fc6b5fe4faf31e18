"""Shared fakes: an in-memory websocket and recording surfaces."""

import asyncio
import json
from typing import Any, Optional, Sequence, Union

import pytest
import websockets

from chat_widget.richtext import RevealDocument, RevealNode


class _Close:
    def __init__(self, code: int, reason: str = ""):
        self.code = code
        self.reason = reason


class FakeSocket:
    """Stands in for a websockets client connection."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.close_code: Optional[int] = None
        self.close_reason = ""
        self._inbox: asyncio.Queue = asyncio.Queue()

    def feed(self, message: Union[str, dict[str, Any]]) -> None:
        self._inbox.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self, code: int = 1006) -> None:
        """Simulate the server side going away."""
        self._inbox.put_nowait(_Close(code, "dropped"))

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self._inbox.put_nowait(_Close(code, reason))

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if isinstance(item, _Close):
            self.close_code = item.code
            self.close_reason = item.reason
            if item.code == 1000:
                raise StopAsyncIteration
            raise websockets.ConnectionClosedError(None, None)
        return item


class RecordingTarget:
    def __init__(self, attached: bool = True):
        self.attached = attached
        self.tokens: list[str] = []
        self.batches: list[list[Any]] = []
        self.marker: Optional[bool] = None
        self.document: Optional[RevealDocument] = None
        self.resets = 0

    @property
    def text(self) -> str:
        return "".join(self.tokens)

    def reset(self) -> None:
        self.resets += 1
        self.tokens = []
        self.batches = []
        self.document = None

    def append_tokens(self, tokens: Sequence[str]) -> None:
        self.batches.append(list(tokens))
        self.tokens.extend(tokens)

    def set_progress_marker(self, visible: bool) -> None:
        self.marker = visible

    def mount(self, document: RevealDocument) -> None:
        self.document = document

    def reveal_units(self, units: Sequence[RevealNode], transition_ms: int) -> None:
        self.batches.append(list(units))


class RecordingSurface:
    """Presentation surface that records every call."""

    def __init__(self, provide_targets: bool = True):
        self.provide_targets = provide_targets
        self.calls: list[tuple] = []
        self.targets: dict[str, RecordingTarget] = {}
        self.loading = False

    def messages(self, kind: Optional[str] = None) -> list[tuple]:
        return [c for c in self.calls if c[0] == "render" and (kind is None or c[1] == kind)]

    def render_message(self, kind, content, id, is_streaming, is_html):
        self.calls.append(("render", kind, content, id, is_streaming, is_html))
        if self.provide_targets:
            self.targets[id] = RecordingTarget()

    def update_streaming_content(self, id, content, is_complete, is_html):
        self.calls.append(("update", id, content, is_complete, is_html))

    def show_loading_indicator(self):
        self.loading = True
        self.calls.append(("loading", True))

    def hide_loading_indicator(self):
        self.loading = False
        self.calls.append(("loading", False))

    def show_form_surface(self):
        self.calls.append(("form",))

    def reveal_target(self, id):
        return self.targets.get(id)


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()
