"""Google Workspace (GSuite) user aliases via the Admin Directory API."""

import logging
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..alias import Alias, Aliases
from ..errors import EmailProviderError, ProviderConfigError, ValidationError
from .base import full_alias, split_alias

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/admin.directory.user.alias"]


def load_credentials(token_path: Path) -> Credentials:
    """Load OAuth credentials from the token file, refreshing them if expired."""
    token_path = Path(token_path)
    if not token_path.exists():
        raise ProviderConfigError(
            f"GSuite token file not found: {token_path}. Run 'aliasman config' first."
        )
    creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    if creds.valid:
        return creds
    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as e:
            raise ProviderConfigError(f"cannot refresh GSuite token: {e}") from e
        token_path.write_text(creds.to_json())
        logger.debug("refreshed GSuite token %s", token_path)
        return creds
    raise ProviderConfigError(f"GSuite token in {token_path} is invalid. Run 'aliasman config'.")


def authorize(credentials_path: Path, token_path: Path) -> Credentials:
    """Run the browser OAuth flow and save the resulting token."""
    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), SCOPES)
    creds = flow.run_local_server(port=0)
    token_path = Path(token_path)
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    token_path.chmod(0o600)
    return creds


class GSuiteEmail:
    """Aliases attached to a single GSuite user."""

    type = "gsuite"
    description = "GSuite backed alias configuration"

    def __init__(self, service):
        self._service = service

    @classmethod
    def from_token(cls, token_path: Path) -> "GSuiteEmail":
        creds = load_credentials(token_path)
        return cls(build("admin", "directory_v1", credentials=creds, cache_discovery=False))

    def _single_user(self, addresses: tuple[str, ...]) -> str:
        if len(addresses) != 1:
            raise ValidationError(
                "gsuite only supports, and requires, a single user for an alias"
            )
        return addresses[0]

    def alias_create(self, alias: str, domain: str, *addresses: str) -> None:
        user = self._single_user(addresses)
        try:
            self._service.users().aliases().insert(
                userKey=user, body={"alias": full_alias(alias, domain)}
            ).execute()
        except HttpError as e:
            raise EmailProviderError(f"gsuite: failure creating alias: {e}") from e

    def alias_delete(self, alias: str, domain: str, *addresses: str) -> None:
        # The directory API accepts an alias as the user key
        user = addresses[0] if addresses else full_alias(alias, domain)
        try:
            self._service.users().aliases().delete(
                userKey=user, alias=full_alias(alias, domain)
            ).execute()
        except HttpError as e:
            raise EmailProviderError(f"gsuite: failure deleting alias: {e}") from e

    def alias_list(self, domain: str, *addresses: str) -> Aliases:
        user = self._single_user(addresses)
        try:
            resp = self._service.users().aliases().list(userKey=user).execute()
        except HttpError as e:
            raise EmailProviderError(f"gsuite: failure listing aliases: {e}") from e

        aliases = Aliases()
        for entry in resp.get("aliases", []):
            try:
                name, alias_domain = split_alias(entry["alias"])
            except ValueError as e:
                raise EmailProviderError(f"gsuite: {e}") from e
            if domain and alias_domain != domain:
                continue
            aliases.append(Alias(
                alias=name,
                domain=alias_domain,
                email_addresses=[entry.get("primaryEmail", user)],
            ))
        aliases.sort()
        return aliases
