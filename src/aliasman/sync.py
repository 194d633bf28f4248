"""Compare alias collections and copy differences between providers."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from .alias import Alias, Aliases, Filter
from .storage.base import StorageProvider

logger = logging.getLogger(__name__)

ADD = "add"
UPDATE = "update"


@dataclass
class SyncAction:
    """A change to make on the destination."""
    kind: str  # ADD or UPDATE
    alias: Alias
    diff: str = ""

    def prompt(self, dest_type: str) -> str:
        if self.kind == ADD:
            return f"Add alias for {self.alias.key()} to {dest_type}?"
        return f"Update alias for {self.alias.key()} in {dest_type}:\n{self.diff}\n?"


@dataclass
class SyncResult:
    added: list[Alias] = field(default_factory=list)
    updated: list[Alias] = field(default_factory=list)
    skipped: list[Alias] = field(default_factory=list)


@dataclass
class AuditReport:
    """Aliases present (or different) on only one side."""
    left_only: Aliases
    right_only: Aliases

    @property
    def clean(self) -> bool:
        return not self.left_only and not self.right_only


def plan_sync(source: Aliases, dest: Aliases, include_updates: bool = True) -> list[SyncAction]:
    """Actions that make dest agree with source.

    Aliases only in source are added; aliases in both that differ are
    updated. Aliases only in dest are left alone.
    """
    theirs = Aliases(dest).to_map()
    plan = []
    for a in Aliases(source).sorted():
        existing = theirs.get(a.key())
        if existing is None:
            plan.append(SyncAction(ADD, a))
        elif include_updates and not a.equal(existing):
            plan.append(SyncAction(UPDATE, a, existing.unified_diff(a)))
    return plan


def apply_sync(
    plan: list[SyncAction],
    dest: StorageProvider,
    confirm: Callable[[str], bool] | None = None,
    assume_yes: bool = False,
    update_modified: bool = False,
) -> SyncResult:
    """Apply planned actions to dest, asking confirm() before each one.

    Declined actions are skipped. Provider errors propagate.
    """
    result = SyncResult()
    for action in plan:
        if not assume_yes and confirm is not None and not confirm(action.prompt(dest.type)):
            result.skipped.append(action.alias)
            continue
        if action.kind == ADD:
            dest.put(action.alias, update_modified)
            result.added.append(action.alias)
        else:
            dest.update(action.alias, update_modified)
            result.updated.append(action.alias)
        logger.info("%s %s on %s", action.kind, action.alias.key(), dest.type)
    return result


def audit(left: Aliases, right: Aliases) -> AuditReport:
    return AuditReport(
        left_only=Aliases(left).diff(Aliases(right)),
        right_only=Aliases(right).diff(Aliases(left)),
    )


def load_all(provider: StorageProvider, read_only: bool = True) -> Aliases:
    """Open a storage provider, read every alias it holds, and close it again."""
    provider.open(read_only)
    try:
        return provider.search(Filter.everything())
    finally:
        provider.close()
