"""
SKSecrets CLI: sovereign secrets from the command line.

This package organizes the CLI into modular command groups.
Each group lives in its own module for maintainability.
The main Click group is defined here and all subcommands
are registered via register functions.

Entry point: sksecrets.cli:main
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from .. import CONFIG_PATH, __version__
from ._common import CliState


@click.group()
@click.version_option(version=__version__, prog_name="sksecrets")
@click.option(
    "--config", "config_path", default=CONFIG_PATH, type=click.Path(),
    help="Profile config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log what is happening.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """SKSecrets: store and retrieve secrets through any backend.

    Values in the local store are sealed with your master password.
    Backups travel as hybrid-encrypted envelopes.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    ctx.obj = CliState(config_path=Path(config_path).expanduser())


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .secrets_cmd import register_secrets_commands
from .backup import register_backup_commands
from .profile import register_profile_commands

register_secrets_commands(main)
register_backup_commands(main)
register_profile_commands(main)
