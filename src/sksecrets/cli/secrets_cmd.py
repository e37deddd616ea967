"""Secret commands: get, put, delete, list, generate, move, template."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from .._files import write_atomic
from ..errors import SecretsError
from ._common import (
    CliState,
    console,
    fail,
    keys_table,
    open_backend,
    read_stdin,
    warn_first_value_kept,
)


def register_secrets_commands(main: click.Group) -> None:
    """Register the per-secret commands on the main group."""

    @main.command("get")
    @click.argument("profile")
    @click.argument("key")
    @click.option("--output", "-o", default=None, type=click.Path(),
                  help="Write the value to this file instead of stdout.")
    @click.pass_obj
    def get_cmd(state: CliState, profile: str, key: str, output: Optional[str]):
        """Print the value of a secret.

        Examples:

            sksecrets get dev db-pass

            sksecrets get dev tls-key -o ./tls.key
        """
        try:
            with open_backend(state, profile) as backend:
                value = backend.get(key)
        except SecretsError as exc:
            fail(f"get failed for '{key}': {exc}")

        if output:
            try:
                write_atomic(Path(output), value)
            except OSError as exc:
                fail(f"get failed for '{key}': {exc}")
            return
        click.echo(value.decode("utf-8"))

    @main.command("put")
    @click.argument("profile")
    @click.argument("key")
    @click.argument("value", required=False)
    @click.option("--yes", "-y", is_flag=True,
                  help="Write to an existing key without asking.")
    @click.pass_obj
    def put_cmd(state: CliState, profile: str, key: str, value: Optional[str], yes: bool):
        """Store a secret. Reads the value from stdin when omitted.

        Examples:

            sksecrets put dev db-pass 's3cr3t'

            cat token.txt | sksecrets put dev api-token
        """
        from ..commands import put_secret

        interactive = value is not None
        if value is None:
            value = read_stdin()

        try:
            with open_backend(state, profile) as backend:
                overwrite = False
                if backend.check_exists(key):
                    if not yes and not interactive:
                        fail(f"'{key}' already exists; pass --yes to overwrite")
                    if not yes and not click.confirm(
                        f"Are you sure to overwrite [{key}]?", default=False
                    ):
                        console.print("[yellow]Aborted.[/]")
                        return
                    overwrite = True
                put_secret(backend, key, value, overwrite=overwrite)
                kept_first = overwrite and not backend.overwrites
        except SecretsError as exc:
            fail(f"put failed for '{key}': {exc}")

        console.print(f"[green]Stored[/] [cyan]{key}[/]")
        if kept_first:
            warn_first_value_kept(key)

    @main.command("delete")
    @click.argument("profile")
    @click.argument("key")
    @click.option("--yes", "-y", is_flag=True, help="Delete without asking.")
    @click.pass_obj
    def delete_cmd(state: CliState, profile: str, key: str, yes: bool):
        """Delete every record of a secret."""
        if not yes and not click.confirm(f"Are you sure to delete [{key}]?", default=False):
            console.print("[yellow]Aborted.[/]")
            return

        try:
            with open_backend(state, profile, need_secret=False) as backend:
                backend.delete(key)
        except SecretsError as exc:
            fail(f"delete failed for '{key}': {exc}")

        console.print(f"[green]Deleted[/] [cyan]{key}[/]")

    @main.command("list")
    @click.argument("profile")
    @click.argument("filter", required=False, default="")
    @click.pass_obj
    def list_cmd(state: CliState, profile: str, filter: str):
        """List secret names, optionally only those containing FILTER."""
        from ..commands import list_keys

        try:
            with open_backend(state, profile, need_secret=False) as backend:
                keys = list_keys(backend, filter)
        except SecretsError as exc:
            fail(f"list failed: {exc}")

        if not keys:
            console.print("\n[dim]No secrets found.[/]\n")
            return

        console.print(f"\n[bold]{len(keys)}[/] secret(s):\n")
        console.print(keys_table(keys))
        console.print()

    @main.command("generate")
    @click.argument("profile")
    @click.argument("key")
    @click.argument("length", type=int)
    @click.option("--show", is_flag=True, help="Print the generated value.")
    @click.pass_obj
    def generate_cmd(state: CliState, profile: str, key: str, length: int, show: bool):
        """Generate a random secret of LENGTH characters and store it.

        Uses the profile's secret_chars alphabet when set.
        """
        from ..commands import put_secret
        from ..generate import generate_secret

        try:
            with open_backend(state, profile) as backend:
                secret = generate_secret(length, backend.profile.secret_chars)
                exists = backend.check_exists(key)
                if exists and not click.confirm(
                    f"Are you sure to overwrite [{key}]?", default=False
                ):
                    console.print("[yellow]Aborted.[/]")
                    return
                put_secret(backend, key, secret, overwrite=True)
                kept_first = exists and not backend.overwrites
        except (SecretsError, ValueError) as exc:
            fail(f"generate failed for '{key}': {exc}")

        console.print(f"[green]Generated[/] {length}-character secret [cyan]{key}[/]")
        if kept_first:
            warn_first_value_kept(key)
        if show:
            click.echo(secret)

    @main.command("move")
    @click.argument("source_profile")
    @click.argument("source_key")
    @click.argument("target_profile")
    @click.argument("target_key", required=False)
    @click.pass_obj
    def move_cmd(
        state: CliState,
        source_profile: str,
        source_key: str,
        target_profile: str,
        target_key: Optional[str],
    ):
        """Move a secret to another profile, optionally renaming it.

        Examples:

            sksecrets move dev db-pass prod

            sksecrets move dev db-pass prod db-pass-v2
        """
        from ..commands import move_secret

        try:
            with open_backend(state, source_profile) as source, \
                    open_backend(state, target_profile) as target:
                destination = move_secret(source, source_key, target, target_key)
        except SecretsError as exc:
            fail(f"move failed for '{source_key}': {exc}")

        console.print(
            f"[green]Moved[/] [cyan]{source_profile}/{source_key}[/] -> "
            f"[cyan]{target_profile}/{destination}[/]"
        )

    @main.command("template")
    @click.argument("profile")
    @click.argument("template_file", type=click.File("r"), default="-")
    @click.option("--output", "-o", default=None, type=click.Path(),
                  help="Write the result to this file instead of stdout.")
    @click.pass_obj
    def template_cmd(state: CliState, profile: str, template_file, output: Optional[str]):
        """Render a Jinja2 template, filling in secrets of PROFILE.

        Reference secrets as {{ secret("name") }}. Reads the template from
        stdin when TEMPLATE_FILE is omitted or '-'.

        Examples:

            sksecrets template dev app.env.j2 -o app.env

            echo 'pw={{ secret("db-pass") }}' | sksecrets template dev
        """
        from ..commands import render_template

        source = template_file.read()
        try:
            with open_backend(state, profile) as backend:
                rendered = render_template(backend, source)
        except SecretsError as exc:
            fail(f"template failed: {exc}")

        if output:
            try:
                write_atomic(Path(output), rendered.encode("utf-8"))
            except OSError as exc:
                fail(f"template failed: {exc}")
            return
        click.echo(rendered, nl=False)
