# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import copy
from dataclasses import dataclass
import datetime
import json
import logging
import os
import threading
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from google.auth import crypt
from google.auth import jwt
from google.auth.credentials import Credentials
from google.auth.credentials import Scoped
from google.auth.exceptions import GoogleAuthError
import google.auth.transport.requests
import requests

from google.cloud.sql.relay.exceptions import AuthenticationError
from google.cloud.sql.relay.exceptions import ConfigurationError

logger = logging.getLogger(name=__name__)

SCOPES: dict[str, str] = {
    "admin": "https://www.googleapis.com/auth/sqlservice.admin",
    "login": "https://www.googleapis.com/auth/sqlservice.login",
}

TOKEN_URI: str = "https://oauth2.googleapis.com/token"
METADATA_TOKEN_URI: str = (
    "http://169.254.169.254/computeMetadata/v1/instance/"
    "service-accounts/default/token"
)
JWT_BEARER_GRANT_TYPE: str = "urn:ietf:params:oauth:grant-type:jwt-bearer"
CREDENTIALS_ENV_VAR: str = "GOOGLE_APPLICATION_CREDENTIALS"
WELL_KNOWN_CREDENTIALS_PATH: str = os.path.join(
    "~", ".config", "gcloud", "application_default_credentials.json"
)

# tokens are treated as expired this many seconds before the server says so
_token_expiry_margin: int = 60
_token_request_timeout: int = 10
_metadata_request_timeout: int = 2
_jwt_lifetime: int = 3600


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _scope_uri(scope: str) -> str:
    try:
        return SCOPES[scope]
    except KeyError:
        raise ConfigurationError(
            f"Unknown token scope '{scope}'. Want one of: "
            f"{', '.join([repr(s) for s in SCOPES])}."
        )


@runtime_checkable
class Credential(Protocol):
    """Anything able to produce a bearer token for a named scope."""

    def access_token(self, scope: str = "admin") -> str: ...


@dataclass(frozen=True)
class Token:
    value: str
    expires_at: datetime.datetime

    @property
    def expired(self) -> bool:
        return _now() >= self.expires_at


class TokenCache:
    """Per-scope memoized bearer tokens.

    The whole check-and-maybe-refresh step runs under one lock, so concurrent
    requests for the same scope result in a single token exchange.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, Token] = {}
        self._lock = threading.Lock()

    def get(self, scope: str, fetch: Callable[[str], tuple[str, int]]) -> str:
        """Return the cached token for scope, calling fetch(scope) when it is
        missing or expired. fetch returns (access_token, expires_in)."""
        with self._lock:
            token = self._tokens.get(scope)
            if token is None or token.expired:
                value, expires_in = fetch(scope)
                token = Token(
                    value,
                    _now()
                    + datetime.timedelta(
                        seconds=int(expires_in) - _token_expiry_margin
                    ),
                )
                self._tokens[scope] = token
            return token.value

    def __contains__(self, scope: str) -> bool:
        return scope in self._tokens


def _parse_token_response(resp: requests.Response, failure: str) -> tuple[str, int]:
    """Extract (access_token, expires_in) from an OAuth2 token response."""
    if resp.status_code != 200:
        # error pages from proxies and load balancers are often not JSON
        try:
            data = resp.json()
        except ValueError:
            data = None
        detail = (
            data.get("error_description") or data.get("error")
            if isinstance(data, dict)
            else None
        )
        raise AuthenticationError(
            f"{failure}: HTTP {resp.status_code} {detail or resp.text}"
        )
    try:
        data = resp.json()
    except ValueError as e:
        raise AuthenticationError(f"Invalid token response: {e}") from e
    try:
        return data["access_token"], int(data["expires_in"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError(f"Invalid token response: missing {e}") from e


class ServiceAccountCredential:
    """Exchanges a self-signed JWT for an access token (JWT bearer grant)."""

    def __init__(self, info: dict[str, Any]) -> None:
        """
        Args:
            info (dict): Parsed service account JSON key file.

        Raises:
            ConfigurationError: `client_email` or `private_key` is missing.
        """
        for field in ("client_email", "private_key"):
            if not info.get(field):
                raise ConfigurationError(
                    f"Missing '{field}' in service account credentials"
                )
        self.client_email: str = info["client_email"]
        self._token_uri: str = info.get("token_uri") or TOKEN_URI
        try:
            self._signer = crypt.RSASigner.from_string(
                info["private_key"], info.get("private_key_id")
            )
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid 'private_key' in service account credentials: {e}"
            ) from e
        self._cache = TokenCache()

    def access_token(self, scope: str = "admin") -> str:
        return self._cache.get(scope, self._fetch_token)

    def _assertion(self, scope: str) -> str:
        now = int(_now().timestamp())
        payload = {
            "iss": self.client_email,
            "scope": _scope_uri(scope),
            "aud": self._token_uri,
            "iat": now,
            "exp": now + _jwt_lifetime,
        }
        return jwt.encode(self._signer, payload).decode("UTF-8")

    def _fetch_token(self, scope: str) -> tuple[str, int]:
        data = {"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": self._assertion(scope)}
        try:
            resp = requests.post(
                self._token_uri, data=data, timeout=_token_request_timeout
            )
        except requests.Timeout as e:
            raise AuthenticationError(f"Token request timed out: {e}") from e
        except requests.RequestException as e:
            raise AuthenticationError(f"Token request failed: {e}") from e
        return _parse_token_response(resp, "Failed to get access token")


class UserCredential:
    """Exchanges a stored OAuth2 refresh token for an access token."""

    def __init__(self, info: dict[str, Any]) -> None:
        for field in ("client_id", "client_secret", "refresh_token"):
            if not info.get(field):
                raise ConfigurationError(f"Missing '{field}' in user credentials")
        self._client_id: str = info["client_id"]
        self._client_secret: str = info["client_secret"]
        self._refresh_token: str = info["refresh_token"]
        self._token_uri: str = info.get("token_uri") or TOKEN_URI
        self._cache = TokenCache()

    def access_token(self, scope: str = "admin") -> str:
        return self._cache.get(scope, self._fetch_token)

    def _fetch_token(self, scope: str) -> tuple[str, int]:
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "refresh_token": self._refresh_token,
            "grant_type": "refresh_token",
            "scope": _scope_uri(scope),
        }
        try:
            resp = requests.post(
                self._token_uri, data=data, timeout=_token_request_timeout
            )
        except requests.Timeout as e:
            raise AuthenticationError(f"Token refresh timed out: {e}") from e
        except requests.RequestException as e:
            raise AuthenticationError(f"Token refresh failed: {e}") from e
        return _parse_token_response(resp, "Failed to refresh token")


class MetadataServiceCredential:
    """Fetches tokens for the default service account from the local
    metadata server (Compute Engine, Cloud Run, GKE, ...)."""

    def __init__(self, token_uri: str = METADATA_TOKEN_URI) -> None:
        self._token_uri = token_uri
        self._cache = TokenCache()

    def access_token(self, scope: str = "admin") -> str:
        return self._cache.get(scope, self._fetch_token)

    def _fetch_token(self, scope: str) -> tuple[str, int]:
        try:
            resp = requests.get(
                self._token_uri,
                params={"scopes": _scope_uri(scope)},
                headers={"Metadata-Flavor": "Google"},
                timeout=_metadata_request_timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise AuthenticationError(
                "Not running on Google Cloud (metadata server unreachable) "
                "and no credentials found"
            ) from e
        except requests.RequestException as e:
            raise AuthenticationError(f"Failed to get metadata token: {e}") from e
        return _parse_token_response(resp, "Failed to get metadata token")


class GoogleAuthCredential:
    """Adapts a google-auth Credentials object to the access_token(scope)
    contract. Each scope gets its own re-scoped copy of the credentials."""

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials
        self._scoped: dict[str, Credentials] = {}
        self._cache = TokenCache()

    def access_token(self, scope: str = "admin") -> str:
        return self._cache.get(scope, self._fetch_token)

    def _with_scope(self, scope: str) -> Credentials:
        if scope not in self._scoped:
            scopes = [_scope_uri(scope)]
            # credentials sourced from a service account or metadata are
            # children of Scoped class and are capable of being re-scoped
            if isinstance(self._credentials, Scoped):
                scoped = self._credentials.with_scopes(scopes=scopes)
            # authenticated user credentials can not be re-scoped
            else:
                scoped = copy.copy(self._credentials)
                scoped._scopes = scopes  # type: ignore[attr-defined]
            self._scoped[scope] = scoped
        return self._scoped[scope]

    def _fetch_token(self, scope: str) -> tuple[str, int]:
        creds = self._with_scope(scope)
        try:
            creds.refresh(google.auth.transport.requests.Request())
        except GoogleAuthError as e:
            raise AuthenticationError(f"Failed to refresh credentials: {e}") from e
        if not creds.token:
            raise AuthenticationError("Failed to refresh credentials: no token")
        if creds.expiry is None:
            return creds.token, _jwt_lifetime
        # google.auth strips timezone info, expiry is naive UTC
        expiry = creds.expiry.replace(tzinfo=datetime.timezone.utc)
        return creds.token, int((expiry - _now()).total_seconds())


def from_info(info: dict[str, Any]) -> Credential:
    """Build a credential from a parsed JSON key file."""
    if info.get("type") == "authorized_user":
        return UserCredential(info)
    return ServiceAccountCredential(info)


def from_file(path: str) -> Credential:
    """Load a service account or authorized user JSON key file."""
    try:
        with open(path) as f:
            info = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Invalid credentials file '{path}': {e}") from e
    if not isinstance(info, dict):
        raise ConfigurationError(f"Invalid credentials file '{path}'")
    return from_info(info)


def default_credentials() -> Credential:
    """Resolve credentials from the environment.

    Order: the file named by GOOGLE_APPLICATION_CREDENTIALS, the gcloud
    application default credentials file, then the metadata server.
    """
    env_path = os.environ.get(CREDENTIALS_ENV_VAR)
    if env_path:
        logger.debug(f"Using credentials file from {CREDENTIALS_ENV_VAR}")
        return from_file(env_path)
    well_known = os.path.expanduser(WELL_KNOWN_CREDENTIALS_PATH)
    if os.path.exists(well_known):
        logger.debug(f"Using credentials file {well_known}")
        return from_file(well_known)
    logger.debug("No credentials file found, using metadata server")
    return MetadataServiceCredential()


def resolve_credentials(credentials: Optional[Any]) -> Credential:
    """Return credentials usable by the connector.

    Raises:
        ConfigurationError: credentials is neither a google-auth Credentials
            object nor has a callable access_token.
    """
    if credentials is None:
        return default_credentials()
    if isinstance(credentials, Credentials):
        return GoogleAuthCredential(credentials)
    if callable(getattr(credentials, "access_token", None)):
        return credentials
    raise ConfigurationError(
        "credentials must provide an access_token(scope) method or be of type "
        f"google.auth.credentials.Credentials, got {type(credentials)}"
    )
