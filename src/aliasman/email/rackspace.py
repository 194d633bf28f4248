"""Rackspace Email aliases via the Rackspace Email REST API."""

import base64
import hashlib
import logging
import time
from datetime import datetime, timezone

import requests

from .. import __version__
from ..alias import Alias, Aliases
from ..errors import EmailProviderError, ProviderConfigError

logger = logging.getLogger(__name__)

API_ENDPOINT = "https://api.emailsrvr.com/v1"
USER_AGENT = f"aliasman/{__version__}"
PAGE_SIZE = 250


def api_signature(user_key: str, secret_key: str, user_agent: str, timestamp: str) -> str:
    """Value of the X-Api-Signature header for a request made at timestamp."""
    digest = hashlib.sha1(f"{user_key}{user_agent}{timestamp}{secret_key}".encode()).digest()
    return f"{user_key}:{timestamp}:{base64.b64encode(digest).decode()}"


class RackspaceEmail:
    """Rackspace Email aliases of a domain."""

    type = "rackspace_email_api"
    description = "Rackspace Email backed alias configuration"

    def __init__(
        self,
        user_key: str,
        secret_key: str,
        session: requests.Session | None = None,
        throttle: float = 0.7,
        base_url: str = API_ENDPOINT,
        timeout: float = 30,
    ):
        """Initialize the API client.

        Args:
            user_key: API user key
            secret_key: API secret key
            throttle: Seconds to wait between the per-alias requests of a listing
        """
        if not user_key:
            raise ProviderConfigError("rackspace_api_user_key is not set")
        if not secret_key:
            raise ProviderConfigError("rackspace_api_secret_key is not set")
        self._user_key = user_key
        self._secret_key = secret_key
        self._session = session or requests.Session()
        self._throttle = throttle
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        return {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "X-Api-Signature": api_signature(
                self._user_key, self._secret_key, USER_AGENT, timestamp
            ),
        }

    def _url(self, domain: str, alias: str | None = None) -> str:
        url = f"{self._base_url}/customers/me/domains/{domain}/rs/aliases"
        if alias is not None:
            url += f"/{alias}"
        return url

    def _request(self, method: str, url: str, action: str, ok_404: bool = False, **kwargs):
        try:
            resp = self._session.request(
                method, url, headers=self._headers(), timeout=self._timeout, **kwargs
            )
        except requests.RequestException as e:
            raise EmailProviderError(f"rackspace_email_api: failure {action}: {e}") from e
        if resp.status_code == 404 and ok_404:
            return resp
        if not resp.ok:
            message = resp.headers.get("x-error-message") or f"HTTP {resp.status_code}"
            raise EmailProviderError(f"rackspace_email_api: failure {action}: {message}")
        return resp

    def alias_create(self, alias: str, domain: str, *addresses: str) -> None:
        self._request(
            "POST", self._url(domain, alias), "creating alias",
            data={"aliasEmails": ",".join(addresses)},
        )

    def alias_delete(self, alias: str, domain: str, *addresses: str) -> None:
        # A 404 means the alias is already gone
        resp = self._request("DELETE", self._url(domain, alias), "deleting alias", ok_404=True)
        if resp.status_code == 404:
            logger.debug("%s@%s did not exist at rackspace", alias, domain)

    def _alias_names(self, domain: str) -> list[str]:
        names = []
        offset = 0
        while True:
            resp = self._request(
                "GET", self._url(domain), "listing aliases",
                params={"size": PAGE_SIZE, "offset": offset},
            )
            data = resp.json()
            page = data.get("aliases") or []
            names.extend(a["name"] for a in page)
            offset += len(page)
            if not page or offset >= data.get("total", 0):
                return names

    def alias_list(self, domain: str, *addresses: str) -> Aliases:
        """List aliases with their targets. One request per alias, throttled."""
        wanted = {a.lower() for a in addresses}
        aliases = Aliases()
        for i, name in enumerate(self._alias_names(domain)):
            if i and self._throttle:
                time.sleep(self._throttle)
            data = self._request("GET", self._url(domain, name), "listing aliases").json()
            targets = (data.get("emailAddressList") or {}).get("emailAddress") or []
            if isinstance(targets, str):
                targets = [targets]
            if wanted and not wanted.intersection(t.lower() for t in targets):
                continue
            aliases.append(Alias(alias=name, domain=domain, email_addresses=list(targets)))
        aliases.sort()
        return aliases
