"""Alias commands: create, delete, suspend, unsuspend, update-description, list, list-mail, search, audit."""

import re

import click
from click import echo, option, style

from ..alias import Alias, Filter, field_names, random_alias
from ..errors import AliasExistsError, AliasNotFoundError, ReadOnlyError
from ..storage.base import alias_key
from ..sync import audit as audit_aliases
from ..table import print_aliases
from .utils import (
    AppContext,
    column_option,
    handle_errors,
    headers_option,
    numbers_option,
    pass_app,
    validate_inputs,
)

ALL_COLUMNS = field_names()
MAIL_COLUMNS = ["alias", "domain", "email_addresses"]


def _require_stored(storage, alias: str, domain: str) -> Alias:
    a = storage.get(alias, domain)
    if a is None:
        raise AliasNotFoundError(alias_key(alias, domain))
    return a


@click.command()
@option('-a', '--alias', 'alias_name', help="Alias name (minus domain)")
@option('-b', '--use-base64', is_flag=True, help="Encode random aliases with a base64 alphabet")
@option('-d', '--domain', help="Domain to attach the alias to")
@option('-D', '--description', default="", help="Description")
@option('-e', '--email-address', 'addresses', multiple=True, help="Address the alias sends to (repeatable)")
@option('-l', '--random-length', default=16, type=click.IntRange(1, 32), show_default=True,
        help="Length of the randomly generated alias")
@option('-r', '--random-alias', 'use_random', is_flag=True, help="Create a random alias")
@pass_app
@handle_errors
def create(
    app: AppContext,
    alias_name: str | None,
    use_base64: bool,
    domain: str | None,
    description: str,
    addresses: tuple[str, ...],
    random_length: int,
    use_random: bool,
):
    """Create an alias on the email provider and record it in storage.

    \b
    Examples:
      aliasman create -a shop -d example.com -e me@example.com -D "Online shop"
      aliasman create -r -l 12 -d example.com
    """
    if app.read_only:
        raise ReadOnlyError("cannot create aliases in read-only mode")
    if use_random:
        alias_name = random_alias(random_length, use_base64)
    alias_name, domain, addrs = validate_inputs(app.config, alias_name, domain, addresses)

    email = app.email()
    with app.open_storage() as storage:
        if storage.get(alias_name, domain) is not None:
            raise AliasExistsError(alias_key(alias_name, domain))
        email.alias_create(alias_name, domain, *addrs)
        echo(f"Created alias {alias_key(alias_name, domain)} that points to {', '.join(addrs)}")
        storage.put(
            Alias(alias=alias_name, domain=domain, email_addresses=addrs, description=description),
            update_modified=True,
        )


@click.command()
@option('-a', '--alias', 'alias_name', help="Alias name (minus domain)")
@option('-d', '--domain', help="Domain of the alias")
@option('-e', '--email-address', 'addresses', multiple=True, help="Owner address, if the provider needs it")
@pass_app
@handle_errors
def delete(app: AppContext, alias_name: str | None, domain: str | None, addresses: tuple[str, ...]):
    """Delete an alias from the email provider and from storage."""
    alias_name, domain, addrs = validate_inputs(
        app.config, alias_name, domain, addresses, need_addresses=False
    )
    if app.read_only:
        raise ReadOnlyError("cannot delete aliases in read-only mode")

    email = app.email()
    with app.open_storage() as storage:
        email.alias_delete(alias_name, domain, *addrs)
        storage.delete(alias_name, domain)
    echo(f"Deleted alias {alias_key(alias_name, domain)}")


@click.command()
@option('-a', '--alias', 'alias_name', help="Alias name (minus domain)")
@option('-d', '--domain', help="Domain of the alias")
@pass_app
@handle_errors
def suspend(app: AppContext, alias_name: str | None, domain: str | None):
    """Stop mail delivery for an alias but keep its record."""
    alias_name, domain, _ = validate_inputs(
        app.config, alias_name, domain, need_addresses=False
    )
    if app.read_only:
        raise ReadOnlyError("cannot suspend aliases in read-only mode")

    email = app.email()
    with app.open_storage() as storage:
        a = _require_stored(storage, alias_name, domain)
        email.alias_delete(alias_name, domain, *a.email_addresses)
        storage.suspend(alias_name, domain)
    echo(f"Suspended alias {alias_key(alias_name, domain)}")


@click.command()
@option('-a', '--alias', 'alias_name', help="Alias name (minus domain)")
@option('-d', '--domain', help="Domain of the alias")
@pass_app
@handle_errors
def unsuspend(app: AppContext, alias_name: str | None, domain: str | None):
    """Restore mail delivery for a suspended alias."""
    alias_name, domain, _ = validate_inputs(
        app.config, alias_name, domain, need_addresses=False
    )
    if app.read_only:
        raise ReadOnlyError("cannot unsuspend aliases in read-only mode")

    email = app.email()
    with app.open_storage() as storage:
        a = _require_stored(storage, alias_name, domain)
        email.alias_create(alias_name, domain, *a.email_addresses)
        storage.unsuspend(alias_name, domain)
    echo(f"Unsuspended alias {alias_key(alias_name, domain)}")


@click.command('update-description')
@option('-a', '--alias', 'alias_name', help="Alias name (minus domain)")
@option('-d', '--domain', help="Domain of the alias")
@option('-D', '--description', required=True, help="New description")
@pass_app
@handle_errors
def update_description(app: AppContext, alias_name: str | None, domain: str | None, description: str):
    """Change the description stored for an alias."""
    alias_name, domain, _ = validate_inputs(
        app.config, alias_name, domain, need_addresses=False
    )
    if app.read_only:
        raise ReadOnlyError("cannot update aliases in read-only mode")

    with app.open_storage() as storage:
        a = _require_stored(storage, alias_name, domain)
        a.description = description
        storage.update(a, update_modified=True)
    echo(f"Updated description of {alias_key(alias_name, domain)}")


@click.command('list')
@column_option(ALL_COLUMNS)
@headers_option
@numbers_option
@pass_app
@handle_errors
def list_aliases(app: AppContext, columns: list[str], no_headers: bool, no_numbers: bool):
    """List every alias in storage."""
    with app.open_storage() as storage:
        aliases = storage.search(Filter.everything())
    print_aliases(aliases, columns, headers=not no_headers, numbers=not no_numbers)


@click.command('list-mail')
@column_option(MAIL_COLUMNS)
@option('-d', '--domain', help="Domain to list")
@option('-e', '--email-address', 'addresses', multiple=True, help="Only aliases sending to this address")
@headers_option
@numbers_option
@pass_app
@handle_errors
def list_mail(
    app: AppContext,
    columns: list[str],
    domain: str | None,
    addresses: tuple[str, ...],
    no_headers: bool,
    no_numbers: bool,
):
    """List the aliases the email provider knows about."""
    _, domain, addrs = validate_inputs(
        app.config, None, domain, addresses, need_alias=False, need_addresses=False
    )
    aliases = app.email().alias_list(domain, *addrs)
    print_aliases(aliases, columns, headers=not no_headers, numbers=not no_numbers)


@click.command()
@column_option(ALL_COLUMNS)
@option('-e', '--exclude-suspended', is_flag=True, help="Leave out suspended aliases")
@option('-E', '--exclude-enabled', is_flag=True, help="Leave out enabled aliases")
@option('-s', '--search', 'pattern', required=True, help="Regular expression (case-insensitive)")
@headers_option
@numbers_option
@pass_app
@handle_errors
def search(
    app: AppContext,
    columns: list[str],
    exclude_suspended: bool,
    exclude_enabled: bool,
    pattern: str,
    no_headers: bool,
    no_numbers: bool,
):
    """Search aliases by alias, domain, address or description.

    \b
    Examples:
      aliasman search -s shop
      aliasman search -s '^news' -e
    """
    criteria = Filter.compile(
        alias=pattern,
        domain=pattern,
        email_address=pattern,
        description=pattern,
        exclude_suspended=exclude_suspended,
        exclude_enabled=exclude_enabled,
    )
    with app.open_storage() as storage:
        aliases = storage.search(criteria, match_any=True)
    print_aliases(aliases, columns, headers=not no_headers, numbers=not no_numbers)


@click.command()
@column_option(MAIL_COLUMNS)
@option('-d', '--domain', help="Domain to audit")
@option('-e', '--email-address', 'addresses', multiple=True, help="Owner address, if the provider needs it")
@option('-S', '--exclude-suspended', is_flag=True, help="Leave suspended aliases out of storage's side")
@pass_app
@handle_errors
def audit(
    app: AppContext,
    columns: list[str],
    domain: str | None,
    addresses: tuple[str, ...],
    exclude_suspended: bool,
):
    """Compare the aliases in storage with the email provider."""
    _, domain, addrs = validate_inputs(
        app.config, None, domain, addresses, need_alias=False, need_addresses=False
    )
    criteria = Filter(
        domain=re.compile(f"^{re.escape(domain)}$", re.IGNORECASE),
        exclude_suspended=exclude_suspended,
    )
    email = app.email()
    with app.open_storage() as storage:
        stored = storage.search(criteria).strip_data(MAIL_COLUMNS)
        storage_type = storage.type
    live = email.alias_list(domain, *addrs).strip_data(MAIL_COLUMNS)

    report = audit_aliases(stored, live)
    if report.clean:
        echo(style(f"{storage_type} and {email.type} agree for {domain}", fg="green"))
        return
    print_aliases(
        report.left_only, columns,
        title=f"Aliases in {storage_type} but not in {email.type}:",
    )
    print_aliases(
        report.right_only, columns,
        title=f"Aliases in {email.type} but not in {storage_type}:",
    )
