"""CLI: chat-widget chat"""

import asyncio
import functools
from typing import Optional

import click
from rich.console import Console

from chat_widget.cli.console import ConsoleSurface
from chat_widget.client import ChatWidget
from chat_widget.errors import ConnectionError
from chat_widget.models.events import WidgetEvent, WidgetSignal
from chat_widget.models.reveal import RevealSpeed
from chat_widget.models.session import ConnectionStatus

console = Console()

REPLY_TIMEOUT_S = 60.0
CANCEL_FORM = "/form"


def _widget_config(**overrides):
    from chat_widget.cli.main import _widget_config
    return _widget_config(**overrides)


def _run(coro):
    from chat_widget.cli.main import _run
    return _run(coro)


async def _ask(text: str, **kwargs) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(click.prompt, text, prompt_suffix=": ", **kwargs))


class _TurnWatcher:
    """Tracks whether the widget is done answering the last input."""

    def __init__(self, surface: ConsoleSurface):
        self._surface = surface
        self.idle = asyncio.Event()

    def __call__(self, event: WidgetEvent) -> None:
        if event.type == WidgetSignal.REVEAL_COMPLETE:
            self._surface.finish_reveal(event.data)
            self.idle.set()
        elif event.type == WidgetSignal.NEW_MESSAGE:
            msg = event.data
            # Revealed messages finish on reveal-complete, streams on their last update.
            if not msg.is_streaming and self._surface.reveal_target(msg.id) is None:
                self.idle.set()
        elif event.type == WidgetSignal.UPDATE_MESSAGE:
            if event.data.is_complete:
                self.idle.set()
        elif event.type == WidgetSignal.SHOW_USER_FORM:
            self.idle.set()
        elif event.type == WidgetSignal.STATUS_CHANGED:
            if event.data is not ConnectionStatus.CONNECTED:
                self.idle.set()

    async def wait(self) -> None:
        try:
            await asyncio.wait_for(self.idle.wait(), timeout=REPLY_TIMEOUT_S)
        except asyncio.TimeoutError:
            console.print("[dim](no reply yet)[/dim]")


async def _fill_form(widget: ChatWidget, watcher: _TurnWatcher) -> None:
    console.print(f"[yellow]Details requested.[/yellow] [dim]Enter {CANCEL_FORM} as your name to cancel.[/dim]")
    name = (await _ask("Name")).strip()
    if name == CANCEL_FORM:
        widget.cancel_user_details()
        console.print("[dim]Form cancelled.[/dim]")
        return
    email = (await _ask("Email")).strip()
    phone = (await _ask("Phone", default="", show_default=False)).strip()
    watcher.idle.clear()
    if widget.submit_user_details({"name": name, "email": email, "phone": phone}):
        await watcher.wait()
    else:
        console.print("[red]Could not submit details: not connected.[/red]")


@click.command("chat")
@click.option("--server-url", default=None, help="ws:// or wss:// widget server. Omit for simulated replies.")
@click.option("--speed", type=click.Choice([s.value for s in RevealSpeed]), default=None)
@click.option("--no-markdown", is_flag=True, help="Reveal replies as plain text.")
def chat_cmd(server_url: Optional[str], speed: Optional[str], no_markdown: bool):
    """Interactive chat through the widget."""
    cfg = _widget_config(
        server_url=server_url,
        speed=speed,
        enable_markdown=False if no_markdown else None,
    )

    async def _chat():
        surface = ConsoleSurface(console, echo_user=False)
        widget = ChatWidget(cfg, surface)
        watcher = _TurnWatcher(surface)
        widget.signals.add_handler(watcher)
        console.rule(f"[bold]{cfg.widget_title}[/bold]")
        widget.start()
        try:
            if widget.transport is not None:
                with console.status(f"Connecting to {cfg.server_url}..."):
                    await widget.wait_until_connected()
            else:
                console.print("[dim]No server configured, replies are simulated.[/dim]")
            console.print("[cyan]Type your message (/quit to exit)[/cyan]\n")

            while True:
                if surface.form_requested:
                    surface.form_requested = False
                    await _fill_form(widget, watcher)
                    continue
                msg = await _ask("You")
                if msg.strip().lower() in ("/quit", "/exit"):
                    break
                watcher.idle.clear()
                if widget.submit(msg):
                    await watcher.wait()
                elif msg.strip():
                    console.print("[red]Message not sent: not connected.[/red]")
        except ConnectionError as e:
            console.print(f"[red]{e}[/red]")
        except (click.Abort, EOFError):
            pass
        finally:
            await widget.destroy()

    _run(_chat())
