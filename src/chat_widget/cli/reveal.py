"""CLI: chat-widget reveal"""

import asyncio
from typing import Optional

import click
from rich.console import Console

from chat_widget.cli.console import ConsoleTarget
from chat_widget.models.reveal import RevealSpeed
from chat_widget.reveal import RevealScheduler

console = Console()


def _widget_config(**overrides):
    from chat_widget.cli.main import _widget_config
    return _widget_config(**overrides)


def _run(coro):
    from chat_widget.cli.main import _run
    return _run(coro)


@click.command("reveal")
@click.argument("text")
@click.option("--speed", type=click.Choice([s.value for s in RevealSpeed]), default=None)
@click.option("--multiplier", type=float, default=None, help="Speed multiplier (> 0).")
@click.option("--markdown/--plain", default=None, help="Rich-text or plain word-by-word reveal.")
def reveal_cmd(text: str, speed: Optional[str], multiplier: Optional[float], markdown: Optional[bool]):
    """Preview the incremental reveal of TEXT."""
    cfg = _widget_config(speed=speed, speed_multiplier=multiplier, enable_markdown=markdown)

    async def _reveal():
        done = asyncio.Event()
        target = ConsoleTarget(console)
        scheduler = RevealScheduler(cfg.speed, cfg.speed_multiplier, cfg.enable_markdown)
        job = scheduler.reveal(target, text, on_complete=done.set)
        if job is None:
            return
        try:
            await done.wait()
        finally:
            scheduler.cancel_all()
        target.finish()
        console.print(f"[dim]{job.total} units in {job.ticks} ticks ({job.mode.value}, {job.delay_ms}ms)[/dim]")

    _run(_reveal())
