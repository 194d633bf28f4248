"""Exception types raised by aliasman."""


class AliasmanError(Exception):
    """Base class for aliasman errors."""


class ValidationError(AliasmanError):
    """Bad user input (missing alias, domain or address)."""


class InvalidPatternError(ValidationError):
    """A search pattern failed to compile."""


class UnknownFieldError(ValidationError):
    """A field name that is not part of the alias record."""

    def __init__(self, name: str):
        super().__init__(f"unknown alias field: {name!r}")
        self.name = name


class ProviderConfigError(AliasmanError):
    """Unknown provider or missing provider settings."""


class StorageError(AliasmanError):
    """A storage backend failed to read or write."""


class EmailProviderError(AliasmanError):
    """The email provider API returned an error."""


class ReadOnlyError(AliasmanError):
    """A mutating call on a provider opened read-only."""


class AliasNotFoundError(AliasmanError):
    def __init__(self, key: str):
        super().__init__(f"alias {key} does not exist")
        self.key = key


class AliasExistsError(AliasmanError):
    def __init__(self, key: str):
        super().__init__(f"alias {key} already exists")
        self.key = key


class DuplicateAliasError(RuntimeError):
    """An alias key was added twice to the same collection.

    This is an invariant violation, not a user error, so it does not
    derive from AliasmanError and is not handled by the CLI.
    """

    def __init__(self, key: str):
        super().__init__(f"duplicate alias key {key} added to collection")
        self.key = key
