"""Profile commands: list, add."""

from __future__ import annotations

from typing import Optional

import click
from rich.table import Table

from ..errors import ConfigurationError, SecretsError
from ..models import BackendType, Profile, SecretsConfig
from ._common import CliState, console, fail


def register_profile_commands(main: click.Group) -> None:
    """Register the profile command group."""

    @main.group()
    def profile():
        """Manage the profiles in the config file."""

    @profile.command("list")
    @click.pass_obj
    def profile_list(state: CliState):
        """List configured profiles."""
        from ..backends.file import store_location
        from ..config import load_config

        try:
            config = load_config(state.config_path)
        except SecretsError as exc:
            fail(exc)

        if not config.profiles:
            console.print("\n[dim]No profiles configured.[/]\n")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Profile", style="cyan", no_wrap=True)
        table.add_column("Backend")
        table.add_column("Project")
        table.add_column("Location", style="dim")

        for name, p in sorted(config.profiles.items()):
            location = str(store_location(p)) if p.backend == BackendType.FILE else (p.vault_url or "")
            table.add_row(name, p.backend.value, p.project_id, location)

        console.print(table)

    @profile.command("add")
    @click.argument("name")
    @click.option("--backend", default=BackendType.FILE.value,
                  type=click.Choice([b.value for b in BackendType]), show_default=True)
    @click.option("--project-id", default="", help="Project or namespace identifier.")
    @click.option("--location", default=None, type=click.Path(), help="Store file (file backend).")
    @click.option("--secret-chars", default=None, help="Alphabet for generated secrets.")
    @click.pass_obj
    def profile_add(
        state: CliState,
        name: str,
        backend: str,
        project_id: str,
        location: Optional[str],
        secret_chars: Optional[str],
    ):
        """Add or replace a profile."""
        from ..config import load_config, save_config

        try:
            config = load_config(state.config_path)
        except ConfigurationError:
            config = SecretsConfig()
        except SecretsError as exc:
            fail(exc)

        config.profiles[name] = Profile(
            name=name,
            backend=BackendType(backend),
            project_id=project_id,
            location=location,
            secret_chars=secret_chars,
        )
        try:
            path = save_config(config, state.config_path)
        except SecretsError as exc:
            fail(exc)
        console.print(f"[green]Profile saved:[/] [cyan]{name}[/] in {path}")
