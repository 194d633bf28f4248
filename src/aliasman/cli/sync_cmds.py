"""Sync commands: sync (storage to storage), sync-from-email."""

import click
from click import echo, option

from ..alias import Filter
from ..errors import ReadOnlyError
from ..sync import SyncResult, apply_sync, load_all, plan_sync
from .utils import AppContext, handle_errors, pass_app, validate_inputs


def _confirm(prompt: str) -> bool:
    return click.confirm(prompt, default=True)


def _summary(result: SyncResult) -> str:
    return (
        f"Added {len(result.added)}, updated {len(result.updated)}, "
        f"skipped {len(result.skipped)}"
    )


@click.command()
@option('-d', '--destination', required=True, help="Storage provider to copy to")
@option('-s', '--source', required=True, help="Storage provider to copy from")
@option('-y', '--yes', is_flag=True, help="Apply every change without asking")
@pass_app
@handle_errors
def sync(app: AppContext, destination: str, source: str, yes: bool):
    """Copy new and changed aliases from one storage provider to another.

    Aliases that exist only in the destination are left alone.

    \b
    Example:
      aliasman sync -s s3 -d sqlite3
    """
    if app.read_only:
        raise ReadOnlyError("cannot sync in read-only mode")

    source_aliases = load_all(app.storage(source))
    with app.open_storage(destination) as dest:
        plan = plan_sync(source_aliases, dest.search(Filter.everything()))
        if not plan:
            echo(f"{destination} is up to date with {source}")
            return
        result = apply_sync(plan, dest, confirm=_confirm, assume_yes=yes)
    echo(_summary(result))


@click.command('sync-from-email')
@option('-d', '--domain', help="Domain to import")
@option('-e', '--email-address', 'addresses', multiple=True, help="Owner address, if the provider needs it")
@option('-y', '--yes', is_flag=True, help="Add every missing alias without asking")
@pass_app
@handle_errors
def sync_from_email(app: AppContext, domain: str | None, addresses: tuple[str, ...], yes: bool):
    """Record aliases that exist on the email provider but not in storage."""
    _, domain, addrs = validate_inputs(
        app.config, None, domain, addresses, need_alias=False, need_addresses=False
    )
    if app.read_only:
        raise ReadOnlyError("cannot sync in read-only mode")

    live = app.email().alias_list(domain, *addrs)
    with app.open_storage() as storage:
        plan = plan_sync(live, storage.search(Filter.everything()), include_updates=False)
        if not plan:
            echo(f"{storage.type} has every alias of {domain}")
            return
        result = apply_sync(plan, storage, confirm=_confirm, assume_yes=yes, update_modified=True)
    echo(_summary(result))
