# altosync/feed.py
"""Authenticated HTTP client for the upstream property feed."""
import base64
import re
import requests

from .config import Settings
from .errors import AuthError, TransportError
from .token_cache import TokenCache
from .utils import logger, mask, retry

TOKEN_RE = re.compile(r"([a-zA-Z0-9]+)")
CONNECTION_ERRORS = (requests.ConnectionError, requests.Timeout)


class FeedClient:
    def __init__(self, settings: Settings, tokens: TokenCache = None, session=None):
        self.settings = settings
        self.tokens = tokens or TokenCache(settings.token_file, buffer=settings.token_buffer)
        self.session = session or requests.Session()

    def _get(self, url, **kwargs):
        # only connection-level failures are retried; HTTP codes are handled by the caller
        fetch = retry(CONNECTION_ERRORS, tries=max(1, self.settings.http_connect_retries))(self.session.get)
        return fetch(url, timeout=self.settings.http_timeout, **kwargs)

    def authenticate(self) -> str:
        """Exchange the feed credentials for a token and cache it."""
        if not self.settings.api_username or not self.settings.api_password:
            raise AuthError("feed credentials are not configured")
        url = self.settings.base_url + "branch"
        logger.info("Requesting new feed token from %s", url)
        try:
            resp = self._get(url, auth=(self.settings.api_username, self.settings.api_password))
        except requests.RequestException as e:
            raise AuthError(f"token request failed: {e}") from e
        if resp.status_code != 200:
            raise AuthError(f"token request returned HTTP {resp.status_code}")
        match = TOKEN_RE.search(resp.headers.get("Token", "") or "")
        if not match:
            raise AuthError("token header missing from authentication response")
        token = match.group(1)
        self.tokens.store(token, self.settings.token_ttl)
        logger.info("Obtained feed token %s", mask(token))
        return token

    def get_token(self) -> str:
        return self.tokens.get() or self.authenticate()

    def resolve(self, endpoint: str) -> str:
        if endpoint == "branch":
            return self.settings.base_url + "branch"
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        raise TransportError(f"unsupported endpoint {endpoint!r}", url=endpoint)

    def call(self, endpoint: str, _retried: bool = False) -> str:
        """GET an endpoint and return the XML body.

        A 401 drops the cached token and repeats the call once with a fresh
        one; a second 401 is an AuthError. Any other non-200 status raises
        TransportError for the caller to handle.
        """
        url = self.resolve(endpoint)
        token = self.get_token()
        headers = {
            "Authorization": "Basic " + base64.b64encode(token.encode("utf-8")).decode("ascii"),
            "Accept": "application/xml",
        }
        logger.debug("GET %s", url)
        try:
            resp = self._get(url, headers=headers)
        except requests.RequestException as e:
            raise TransportError(f"request failed: {e}", url=url) from e

        if resp.status_code == 200:
            return resp.text
        if resp.status_code == 401:
            self.tokens.invalidate()
            if _retried:
                raise AuthError(f"still unauthorized after re-authenticating for {url}")
            logger.warning("HTTP 401 for %s; re-authenticating once", url)
            return self.call(endpoint, _retried=True)
        raise TransportError(f"HTTP {resp.status_code} for {url}", status_code=resp.status_code, url=url)

    def fetch_branch_list(self) -> str:
        return self.call("branch")

    def fetch_property_summaries(self, branch_url: str) -> str:
        return self.call(branch_url.rstrip("/") + "/property")

    def fetch_property_detail(self, url: str) -> str:
        return self.call(url)
