"""aliasman - manage email aliases across mail and storage providers."""

__version__ = "0.1.0"

from .alias import Alias, Aliases, AliasesMap, Filter
from .errors import AliasmanError

__all__ = ["Alias", "Aliases", "AliasesMap", "AliasmanError", "Filter", "__version__"]
