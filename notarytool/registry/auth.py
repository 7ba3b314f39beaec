"""HTTP transports, including one that answers registry auth challenges."""

from __future__ import annotations

import functools
import json
import re
from typing import Protocol
from urllib.parse import urlencode, urlsplit, urlunsplit

import requests
from requests.auth import HTTPBasicAuth

_AUTH_HEADER_RE = re.compile(r'(realm|service|scope)="([^"]*)')


class Transport(Protocol):
    """Sends a single prepared request and returns its response."""

    def round_trip(self, request: requests.PreparedRequest) -> requests.Response:
        ...


class HTTPTransport:
    """Plain transport over a requests session; redirects are not followed."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self.session = session or requests.Session()

    def round_trip(self, request: requests.PreparedRequest) -> requests.Response:
        return self.session.send(request, allow_redirects=False, stream=True)


@functools.lru_cache(maxsize=None)
def default_transport() -> HTTPTransport:
    """Return the shared default transport."""
    return HTTPTransport()


class AuthTransport:
    """Wraps a transport, answering basic and bearer auth challenges."""

    def __init__(self, base: Transport, username: str, password: str) -> None:
        self.base = base
        self.username = username
        self.password = password

    def round_trip(self, request: requests.PreparedRequest) -> requests.Response:
        """Send ``request``, retrying once with credentials on a 401 challenge."""
        response = self.base.round_trip(request.copy())
        if response.status_code != 401:
            return response

        scheme, params = parse_auth_header(response.headers.get("Www-Authenticate", ""))
        if scheme == "basic":
            if not self.username:
                return response
            response.close()
            retry = request.copy()
            HTTPBasicAuth(self.username, self.password)(retry)
        elif scheme == "bearer":
            response.close()
            token, failed = self._fetch_token(params or {})
            if failed is not None:
                return failed
            retry = request.copy()
            retry.headers["Authorization"] = f"Bearer {token}"
        else:
            return response

        return self.base.round_trip(retry)

    def _fetch_token(self, params: dict[str, str]) -> tuple[str, requests.Response | None]:
        query = {key: params[key] for key in ("scope", "service") if key in params}
        url = urlunsplit(urlsplit(params.get("realm", ""))._replace(query=urlencode(query)))
        request = requests.Request("GET", url).prepare()
        if self.username:
            HTTPBasicAuth(self.username, self.password)(request)

        response = self.base.round_trip(request)
        if response.status_code != 200:
            return "", response
        try:
            result = json.loads(response.content)
        finally:
            response.close()
        if not isinstance(result, dict):
            raise ValueError("invalid token response")
        return result.get("access_token") or "", None


def new_auth_transport(base: Transport | None, username: str, password: str) -> AuthTransport:
    """Wrap ``base`` (the default transport if None) with auth strategies."""
    return AuthTransport(base or default_transport(), username, password)


def parse_auth_header(header: str) -> tuple[str, dict[str, str] | None]:
    """Split a ``WWW-Authenticate`` value into a lower-case scheme and its parameters."""
    scheme, separator, rest = header.partition(" ")
    scheme = scheme.lower()
    if not separator:
        return scheme, None
    params = {name.lower(): value for name, value in _AUTH_HEADER_RE.findall(rest)}
    return scheme, params