"""Miscellaneous commands: config, list-providers, version."""

import click
from click import echo, option, prompt, style

from .. import __version__
from ..config import save_config
from .utils import AppContext, handle_errors, pass_app, split_addresses


def _prompt(text: str, default: str) -> str:
    return prompt(text, default=default or "", show_default=bool(default))


@click.command()
@option('-a', '--all', 'configure_all', is_flag=True, help="Configure every provider, not just the selected ones")
@pass_app
@handle_errors
def config(app: AppContext, configure_all: bool):
    """Interactively write the configuration file."""
    cfg = app.config
    registry = app.registry

    cfg.email_type = prompt(
        "Email provider",
        type=click.Choice(registry.email_names()),
        default=cfg.email_type or registry.email_names()[0],
    )
    cfg.storage_type = prompt(
        "Storage provider",
        type=click.Choice(registry.storage_names()),
        default=cfg.storage_type or registry.storage_names()[0],
    )

    for name in registry.email_names():
        if configure_all or name == cfg.email_type:
            echo(style(f"{name} settings", bold=True))
            registry.email[name].configure(cfg, _prompt)
    for name in registry.storage_names():
        if configure_all or name == cfg.storage_type:
            echo(style(f"{name} settings", bold=True))
            registry.storage[name].configure(cfg, _prompt)

    cfg.default_domain = _prompt("Default domain", cfg.default_domain)
    addresses = _prompt("Default email address(es), comma-separated", ",".join(cfg.default_addresses))
    cfg.default_addresses = split_addresses([addresses])

    save_config(cfg, app.config_path)
    echo(f"Wrote configuration to {style(str(app.config_path), fg='cyan')}")


@click.command('list-providers')
@pass_app
def list_providers(app: AppContext):
    """Show the available email and storage providers."""
    echo("Email providers:")
    for name in app.registry.email_names():
        echo(f"  {name:<22} {app.registry.email[name].description}")
    echo()
    echo("Storage providers:")
    for name in app.registry.storage_names():
        echo(f"  {name:<22} {app.registry.storage[name].description}")


@click.command()
def version():
    """Print the aliasman version."""
    echo(f"aliasman -- {__version__}")
