"""
Collaborator interfaces consumed by the widget.

The presentation surface (visual tree, styling) and the voice SDK live
outside this package; these protocols are all the widget relies on.
"""

from typing import Optional, Protocol, Sequence, runtime_checkable

from chat_widget.richtext import RevealDocument, RevealNode


@runtime_checkable
class RevealTarget(Protocol):
    """One message body that a reveal job writes into."""

    @property
    def attached(self) -> bool: ...

    def reset(self) -> None: ...

    def append_tokens(self, tokens: Sequence[str]) -> None: ...

    def set_progress_marker(self, visible: bool) -> None: ...

    def mount(self, document: RevealDocument) -> None: ...

    def reveal_units(self, units: Sequence[RevealNode], transition_ms: int) -> None: ...


class PresentationSurface(Protocol):
    def render_message(self, kind: str, content: str, id: str, is_streaming: bool, is_html: bool) -> None: ...

    def update_streaming_content(self, id: str, content: str, is_complete: bool, is_html: bool) -> None: ...

    def show_loading_indicator(self) -> None: ...

    def hide_loading_indicator(self) -> None: ...

    def show_form_surface(self) -> None: ...

    def reveal_target(self, id: str) -> Optional[RevealTarget]: ...


class VoiceModule(Protocol):
    """Opaque voice-conversation capability."""

    @property
    def active(self) -> bool: ...

    async def start_conversation(self) -> None: ...

    async def end_conversation(self) -> None: ...

    async def set_volume(self, volume: float) -> None: ...
