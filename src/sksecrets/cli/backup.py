"""Backup and restore commands: create, restore, keygen."""

from __future__ import annotations

from typing import Optional

import click
from rich.markup import escape
from rich.panel import Panel

from ..errors import SecretsError
from ._common import CliState, console, fail, open_backend


def register_backup_commands(main: click.Group) -> None:
    """Register the backup command group."""

    @main.group()
    def backup():
        """Backup and restore portable snapshots of your secrets.

        Write the secrets of a profile to a file, optionally encrypted
        to a recipient key pair, and restore them into any profile.
        """

    @backup.command("create")
    @click.argument("profile")
    @click.option("--path", "-o", "path", required=True, type=click.Path(),
                  help="Backup file to write.")
    @click.option("--filter", "filter", default="", help="Only keys containing this text.")
    @click.option("--public-key", default=None, type=click.Path(),
                  help="Recipient public key (PEM); encrypts the backup.")
    @click.pass_obj
    def backup_create(
        state: CliState, profile: str, path: str, filter: str, public_key: Optional[str]
    ):
        """Back up the secrets of PROFILE.

        Examples:

            sksecrets backup create dev --path dev.backup

            sksecrets backup create dev --path dev.backup --public-key sksecrets_backupkey_rsa_pub
        """
        from ..backup import create_backup, write_backup
        from ..keypair import load_public_key

        console.print(f"\n[cyan]Backing up profile '{profile}' (filter: '{filter}')...[/]")
        try:
            recipient = load_public_key(public_key) if public_key else None
            with open_backend(state, profile) as source:
                envelope = create_backup(source, filter=filter, public_key=recipient)
            target = write_backup(envelope, path)
        except SecretsError as exc:
            fail(f"backup failed: {exc}")

        count = (
            "sealed" if envelope.encrypted else f"{len(envelope.payload)} secret(s)"
        )
        console.print(Panel(
            f"[bold green]Backup created[/]\n"
            f"Profile: {profile}\n"
            f"Contents: {count}\n"
            f"Encrypted: {'yes' if envelope.encrypted else '[yellow]no[/]'}\n"
            f"Path: [cyan]{target}[/]",
            title="Backup Complete",
            border_style="green",
        ))

    @backup.command("restore")
    @click.argument("profile")
    @click.option("--path", "-i", "path", required=True, type=click.Path(),
                  help="Backup file to read.")
    @click.option("--private-key", default=None, type=click.Path(),
                  help="Private key (PEM) for encrypted backups.")
    @click.pass_obj
    def backup_restore(state: CliState, profile: str, path: str, private_key: Optional[str]):
        """Restore a backup into PROFILE.

        Every secret is stored as <name>_restore so nothing live is
        replaced.

        Examples:

            sksecrets backup restore dev --path dev.backup --private-key sksecrets_backupkey_rsa
        """
        from ..backup import RESTORE_SUFFIX, restore_backup
        from ..keypair import load_private_key

        console.print(f"\n[cyan]Restoring profile '{profile}' from {path}...[/]")
        try:
            key = load_private_key(private_key) if private_key else None
            with open_backend(state, profile) as destination:
                result = restore_backup(path, destination, private_key=key)
        except SecretsError as exc:
            fail(f"restore failed: {exc}")

        status = "[green]COMPLETE[/]" if not result.errors else "[red]ERRORS[/]"
        console.print(Panel(
            f"[bold green]Restore finished[/]\n"
            f"Total keys: {result.total}\n"
            f"Restored: {result.restored} (as <name>{RESTORE_SUFFIX})\n"
            f"Status: {status}",
            title="Restore Complete",
            border_style="green" if not result.errors else "yellow",
        ))

        if result.errors:
            console.print("[yellow]Failed keys:[/]")
            for name, err in result.errors:
                console.print(f"  [red]{escape(name)}[/]: {escape(err)}")
            raise SystemExit(1)

    @backup.command("keygen")
    @click.argument("path", required=False)
    @click.option("--bits", default=4096, show_default=True, help="RSA modulus size.")
    @click.option("--force", is_flag=True, help="Replace an existing key pair at PATH.")
    def backup_keygen(path: Optional[str], bits: int, force: bool):
        """Generate a key pair for encrypted backups.

        Writes the private key to PATH and the public key to PATH_pub.
        Keep the private key safe: without it no backup made for its
        public key can be restored. An existing key at PATH is left alone
        unless --force is given.
        """
        from ..keypair import DEFAULT_KEY_NAME, generate_key_pair, save_key_pair

        try:
            pair = generate_key_pair(bits)
            private_path, public_path = save_key_pair(
                pair, path or DEFAULT_KEY_NAME, force=force
            )
        except (SecretsError, ValueError) as exc:
            fail(f"keygen failed: {exc}")

        console.print(f"[green]Key pair saved:[/] [cyan]{private_path}[/], [cyan]{public_path}[/]")

    main.add_command(backup)
