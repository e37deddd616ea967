"""Shared utilities for all CLI command modules.

Provides the Rich console instance, the per-invocation state object,
and helpers to open a profile's backend with its passphrase.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import CONFIG_PATH
from ..backends import Backend, backend_class
from ..config import get_profile, load_config
from ..errors import ConfigurationError
from ..models import Key, Profile

console = Console()

PASSPHRASE_ENV = "SKSECRETS_PASSPHRASE"


@dataclass
class CliState:
    """Options given to the top-level group, passed down via ``ctx.obj``."""

    config_path: Path = Path(CONFIG_PATH).expanduser()
    passphrase: Optional[str] = None


def fail(message: object) -> NoReturn:
    """Print an error in red and exit with status 1."""
    console.print(f"[red]{escape(str(message))}[/]")
    raise SystemExit(1)


def warn_first_value_kept(key: str) -> None:
    """Note that the new record is shadowed by the existing one."""
    console.print(
        f"[yellow]Note:[/] this store keeps every record, and get still returns "
        f"the first value of [cyan]{escape(key)}[/]. Delete the key first to replace it."
    )


def read_stdin() -> str:
    """Read a value piped on stdin, minus one trailing newline."""
    data = sys.stdin.read()
    if data.endswith("\n"):
        data = data[:-1]
    return data


def resolve_passphrase(state: CliState) -> str:
    """Return the master passphrase, prompting once if not yet known.

    Looks at ``$SKSECRETS_PASSPHRASE`` first, then asks on the terminal.
    """
    if state.passphrase:
        return state.passphrase

    passphrase = os.environ.get(PASSPHRASE_ENV)
    if not passphrase:
        console.print("[dim]Make sure you use a secure and strong master password.[/]")
        passphrase = click.prompt("Enter master password", hide_input=True, default="",
                                  show_default=False)
    if not passphrase:
        raise ConfigurationError("password should have at least one character")
    state.passphrase = passphrase
    return passphrase


def load_profile(state: CliState, name: str) -> Profile:
    """Load the config file and pick one profile."""
    return get_profile(load_config(state.config_path), name)


def open_backend(state: CliState, profile_name: str, need_secret: bool = True) -> Backend:
    """Build the backend for ``profile_name``.

    The passphrase is only asked for when the backend needs one and the
    command is going to read or write values.
    """
    profile = load_profile(state, profile_name)
    cls = backend_class(profile)
    passphrase = None
    if need_secret and cls.requires_secret():
        passphrase = resolve_passphrase(state)
    return cls(profile, passphrase=passphrase)


def keys_table(keys: list[Key]) -> Table:
    """Render key metadata as a Rich table."""
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Created", style="dim")
    table.add_column("Owner")
    table.add_column("Info", style="dim")

    for key in keys:
        table.add_row(
            key.name,
            key.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            key.owner,
            key.info,
        )
    return table
