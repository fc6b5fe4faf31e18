"""
chat-widget CLI (`chat-widget` command).

Commands:
  chat-widget chat                 Interactive REPL against a widget server
  chat-widget reveal <text>        Preview the incremental reveal locally
  chat-widget config show|set      Inspect or edit ~/.chat-widget/config.json
"""

import asyncio
import json
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install chat-widget-client[cli]")

from chat_widget import __version__
from chat_widget.config import WidgetConfig, load_config
from chat_widget.errors import ConfigError

console = Console()
CONFIG_FILE = Path.home() / ".chat-widget" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _widget_config(**overrides) -> WidgetConfig:
    try:
        return load_config(_load_config(), **overrides)
    except ConfigError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise SystemExit(1)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", is_flag=True, help="Log transport and routing activity.")
def main(verbose: bool):
    """chat-widget: talk to a conversational widget server from the terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


from chat_widget.cli.chat import chat_cmd
from chat_widget.cli.config import config
from chat_widget.cli.reveal import reveal_cmd

main.add_command(chat_cmd)
main.add_command(reveal_cmd)
main.add_command(config)


if __name__ == "__main__":
    main()
