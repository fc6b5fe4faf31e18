"""CLI: chat-widget config"""

import json

import click
from rich.console import Console
from rich.table import Table

from chat_widget.config import WidgetConfig, load_config
from chat_widget.errors import ConfigError

console = Console()


def _load_config() -> dict:
    from chat_widget.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from chat_widget.cli.main import _save_config
    _save_config(cfg)


def _parse_value(raw: str):
    """JSON literals (numbers, true/false, null) are decoded; anything else is a string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@click.group()
def config():
    """Show or edit the stored widget configuration."""


@config.command("show")
@click.option("--json-output", "--json", is_flag=True)
def show_cmd(json_output: bool):
    """Show the effective configuration."""
    try:
        cfg = load_config(_load_config())
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    values = cfg.model_dump(by_alias=True)
    if json_output:
        click.echo(json.dumps(values, indent=2))
        return
    table = Table("Key", "Value")
    for key, value in values.items():
        table.add_row(key, repr(value))
    console.print(table)


@config.command("set")
@click.argument("key")
@click.argument("value")
def set_cmd(key: str, value: str):
    """Set KEY (camelCase or snake_case) to VALUE."""
    fields = {name: info.alias for name, info in WidgetConfig.model_fields.items()}
    alias = fields.get(key, key)
    if alias not in fields.values():
        console.print(f"[red]Unknown config key: {key}[/red]")
        raise SystemExit(1)

    stored = _load_config()
    stored[alias] = _parse_value(value)
    try:
        load_config(stored)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    _save_config(stored)
    console.print(f"[green]{alias}[/green] = {stored[alias]!r}")
