"""Terminal presentation surface for the chat REPL."""

import re
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.status import Status

from chat_widget.models.events import MessageKind
from chat_widget.richtext import RevealDocument, RevealNode

_ANCHOR = re.compile(r'<a\s[^>]*href="([^"]*)"[^>]*>(.*?)</a>', re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_BREAK_BEFORE = frozenset({"p", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "blockquote", "tr", "br", "hr"})

PREFIXES = {
    MessageKind.USER: "[cyan]You:[/cyan] ",
    MessageKind.ASSISTANT: "[green]Assistant:[/green] ",
}


def html_to_text(content: str) -> str:
    return _TAG.sub("", _ANCHOR.sub(lambda m: f"{m.group(2)} ({m.group(1)})", content))


class ConsoleTarget:
    """Reveal target that appends to the terminal as units become visible."""

    def __init__(self, console: Console):
        self._console = console
        self.attached = True
        self._wrote = False
        self._rich = False

    def _out(self, text: str) -> None:
        if text:
            self._console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
            self._wrote = True

    def reset(self) -> None:
        self._wrote = False
        self._rich = False

    def append_tokens(self, tokens: Sequence[str]) -> None:
        self._out("".join(tokens))

    def set_progress_marker(self, visible: bool) -> None:
        if not visible:
            self._console.print()

    def mount(self, document: RevealDocument) -> None:
        self._rich = True  # everything starts hidden

    def reveal_units(self, units: Sequence[RevealNode], transition_ms: int) -> None:
        for unit in units:
            if unit.tag == "span":
                self._out(unit.plain_text())
            elif unit.tag == "li":
                self._out("\n• " if self._wrote else "• ")
            elif unit.tag in _BREAK_BEFORE and self._wrote:
                self._out("\n")

    def finish(self) -> None:
        if self._rich:
            self._console.print()


class ConsoleSurface:
    def __init__(self, console: Optional[Console] = None, echo_user: bool = True):
        self.console = console or Console()
        self.echo_user = echo_user
        self.form_requested = False
        self._targets: dict[str, ConsoleTarget] = {}
        self._streamed: dict[str, int] = {}
        self._status: Optional[Status] = None

    def render_message(self, kind: str, content: str, id: str, is_streaming: bool, is_html: bool) -> None:
        self.hide_loading_indicator()
        text = html_to_text(content) if is_html else content
        if kind == MessageKind.SYSTEM:
            self.console.print(f"[dim]{escape(text)}[/dim]", highlight=False)
            return
        if kind == MessageKind.USER and not self.echo_user:
            return  # the prompt already shows it
        self.console.print(PREFIXES.get(kind, ""), end="")
        if is_streaming:
            self._streamed[id] = len(text)
            self.console.print(text, end="", markup=False, highlight=False)
        elif text:
            self.console.print(text, markup=False, highlight=False)
        else:
            self._targets[id] = ConsoleTarget(self.console)

    def update_streaming_content(self, id: str, content: str, is_complete: bool, is_html: bool) -> None:
        text = html_to_text(content) if is_html else content
        printed = self._streamed.get(id, 0)
        # Only the growth since the last render can be appended to a terminal.
        self.console.print(text[printed:], end="", markup=False, highlight=False)
        self._streamed[id] = max(printed, len(text))
        if is_complete:
            self._streamed.pop(id, None)
            self.console.print()

    def show_loading_indicator(self) -> None:
        self.hide_loading_indicator()
        self._status = self.console.status("Thinking...")
        self._status.start()

    def hide_loading_indicator(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def show_form_surface(self) -> None:
        self.hide_loading_indicator()
        self.form_requested = True

    def reveal_target(self, id: str) -> Optional[ConsoleTarget]:
        return self._targets.get(id)

    def finish_reveal(self, id: str) -> None:
        target = self._targets.pop(id, None)
        if target is not None and target.attached:
            target.finish()
