"""Shared CLI utilities and helpers."""

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from ..alias import parse_fields
from ..config import AliasmanConfig
from ..email.base import EmailProvider
from ..errors import AliasmanError, ProviderConfigError, ValidationError
from ..registry import ProviderRegistry
from ..storage.base import StorageProvider


def err(*args, **kwargs):
    """Print to stderr."""
    print(*args, file=sys.stderr, **kwargs)


def setup_logging(verbose: int) -> None:
    """Log to stderr: warnings by default, -v for info, -vv for debug."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# =============================================================================
# Application context
# =============================================================================

@dataclass
class AppContext:
    """State shared by every command, stored as the click context object."""
    config: AliasmanConfig
    config_path: Path
    registry: ProviderRegistry
    read_only: bool = False
    email_type: str | None = None
    storage_type: str | None = None

    def storage(self, name: str | None = None) -> StorageProvider:
        name = name or self.storage_type or self.config.storage_type
        if not name:
            raise ProviderConfigError(
                "No storage provider configured. Use --storage-type or run 'aliasman config'."
            )
        return self.registry.storage_provider(name, self.config)

    def email(self) -> EmailProvider:
        name = self.email_type or self.config.email_type
        if not name:
            raise ProviderConfigError(
                "No email provider configured. Use --email-type or run 'aliasman config'."
            )
        return self.registry.email_provider(name, self.config)

    @contextmanager
    def open_storage(self, name: str | None = None, read_only: bool | None = None):
        """Open a storage provider for the duration of a block."""
        provider = self.storage(name)
        provider.open(self.read_only if read_only is None else read_only)
        try:
            yield provider
        finally:
            provider.close()


pass_app = click.make_pass_decorator(AppContext)


def handle_errors(f):
    """Turn aliasman errors into usage errors or a message and exit status 1."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            raise click.UsageError(str(e), ctx=click.get_current_context(silent=True))
        except AliasmanError as e:
            err(f"Error: {e}")
            sys.exit(1)
    return wrapper


# =============================================================================
# Input validation
# =============================================================================

def validate_inputs(
    config: AliasmanConfig,
    alias: str | None,
    domain: str | None,
    addresses: tuple[str, ...] | list[str] = (),
    need_alias: bool = True,
    need_addresses: bool = True,
) -> tuple[str, str, list[str]]:
    """Fill in the default domain and addresses, and check nothing required is missing."""
    domain = domain or config.default_domain
    if not domain:
        raise ValidationError("domain needed")
    if need_alias and not alias:
        raise ValidationError("alias needed")
    addresses = split_addresses(addresses) or list(config.default_addresses)
    if need_addresses and not addresses:
        raise ValidationError("email address(es) needed")
    return alias or "", domain, addresses


def split_addresses(values) -> list[str]:
    """Flatten repeated and comma-separated address options."""
    result = []
    for value in values or ():
        result.extend(a.strip() for a in value.split(",") if a.strip())
    return result


def column_option(default: list[str]):
    """-c/--columns option with a default field list."""
    return click.option(
        '-c', '--columns', multiple=True, callback=_parse_columns,
        default=[",".join(default)], show_default=True,
        help="Fields to show, comma-separated or repeated",
    )


def _parse_columns(ctx, param, value):
    try:
        return parse_fields(value)
    except ValidationError as e:
        raise click.BadParameter(str(e))


headers_option = click.option('-H', '--no-headers', is_flag=True, help="Omit the table header row")
numbers_option = click.option('-N', '--no-numbers', is_flag=True, help="Omit the row number column")


# =============================================================================
# Command aliases
# =============================================================================

class AliasGroup(click.Group):
    """Click Group that supports command aliases."""

    def __init__(self, *args, aliases: dict[str, str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.aliases = aliases or {}
        self._cmd_aliases: dict[str, list[str]] = {}
        for alias, cmd in self.aliases.items():
            self._cmd_aliases.setdefault(cmd, []).append(alias)

    def get_command(self, ctx, cmd_name):
        cmd_name = self.aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, cmd_name)

    def resolve_command(self, ctx, args):
        _, cmd_name, args = super().resolve_command(ctx, args)
        cmd_name = self.aliases.get(cmd_name, cmd_name)
        return _, cmd_name, args

    def format_commands(self, ctx, formatter):
        """Write all commands with their aliases to the formatter."""
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            aliases = self._cmd_aliases.get(subcommand, [])
            if aliases:
                name = f"{subcommand} ({', '.join(sorted(aliases))})"
            else:
                name = subcommand
            commands.append((name, cmd.get_short_help_str(limit=formatter.width)))

        if commands:
            with formatter.section("Commands"):
                formatter.write_dl(commands)
