"""Email provider backends."""

from .base import EmailProvider, full_alias, split_alias

__all__ = ["EmailProvider", "full_alias", "split_alias"]
