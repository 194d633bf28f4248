"""CLI package for aliasman.

This package organizes CLI commands into modules:
- alias_cmds.py: create, delete, suspend, unsuspend, update-description,
  list, list-mail, search, audit
- sync_cmds.py: sync, sync-from-email
- misc.py: config, list-providers, version
- utils.py: Shared utilities and helpers
"""

from pathlib import Path

import click
from click import option
from dotenv import load_dotenv

from ..config import CONFIG_DIR_ENV, CONFIG_FILE, default_config_dir, load_config
from ..registry import ProviderRegistry, default_registry
from .utils import AliasGroup, AppContext, setup_logging

from .alias_cmds import (
    audit,
    create,
    delete,
    list_aliases,
    list_mail,
    search,
    suspend,
    unsuspend,
    update_description,
)
from .misc import config, list_providers, version
from .sync_cmds import sync, sync_from_email


@click.group(cls=AliasGroup, aliases={
    'a': 'audit',
    'c': 'create',
    'ls': 'list',
    'lm': 'list-mail',
    'lp': 'list-providers',
    'rm': 'delete',
    's': 'search',
    'sfe': 'sync-from-email',
    'ud': 'update-description',
})
@option('--config-dir', type=click.Path(file_okay=False, path_type=Path), envvar=CONFIG_DIR_ENV,
        help="Configuration directory (default: ~/.config/aliasman)")
@option('--config-file', default=CONFIG_FILE, show_default=True, help="Configuration file name")
@option('--email-type', help="Email provider to use instead of the configured one")
@option('--readonly', is_flag=True, help="Open providers read-only; refuse every change")
@option('--storage-type', help="Storage provider to use instead of the configured one")
@option('-v', '--verbose', count=True, help="Log more (repeat for debug output)")
@click.pass_context
def main(
    ctx,
    config_dir: Path | None,
    config_file: str,
    email_type: str | None,
    readonly: bool,
    storage_type: str | None,
    verbose: int,
):
    """Manage email aliases across email and storage providers."""
    load_dotenv()
    setup_logging(verbose)

    config_path = (config_dir or default_config_dir()) / config_file
    registry = ctx.obj if isinstance(ctx.obj, ProviderRegistry) else default_registry()
    ctx.obj = AppContext(
        config=load_config(config_path),
        config_path=config_path,
        registry=registry,
        read_only=readonly,
        email_type=email_type,
        storage_type=storage_type,
    )


main.add_command(audit)
main.add_command(config)
main.add_command(create)
main.add_command(delete)
main.add_command(list_aliases)
main.add_command(list_mail)
main.add_command(list_providers)
main.add_command(search)
main.add_command(suspend)
main.add_command(sync)
main.add_command(sync_from_email)
main.add_command(unsuspend)
main.add_command(update_description)
main.add_command(version)


__all__ = [
    'main',
    'audit',
    'config',
    'create',
    'delete',
    'list_aliases',
    'list_mail',
    'list_providers',
    'search',
    'suspend',
    'sync',
    'sync_from_email',
    'unsuspend',
    'update_description',
    'version',
]
