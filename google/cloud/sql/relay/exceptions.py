"""
Copyright 2026 Google LLC

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

  https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

from typing import Optional


class ConnectorError(Exception):
    """
    Base class for all errors raised by the connector. Carries a
    machine-readable ``code`` alongside the human readable message.
    """

    default_code = "ECONNECTOR"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code


class ConfigurationError(ConnectorError, ValueError):
    """
    Raised when the connector is misconfigured: malformed instance connection
    name, invalid IP or auth type, incomplete credential material or a region
    mismatch. Always fixable by the caller.
    """

    default_code = "ECONFIG"


class AuthenticationError(ConnectorError):
    """
    Raised when an OAuth2 access token can not be obtained.
    """

    default_code = "EAUTH"


class CloudSQLConnectionError(ConnectorError):
    """
    Raised when the Cloud SQL Admin API or the Cloud SQL instance can not be
    reached, or returns an unusable response.
    """

    default_code = "ECONNECTION"


class CloudSQLIPTypeError(ConnectorError):
    """
    Raised when IP address for the preferred IP type is not found.
    """

    default_code = "ENOIPADDRESS"


class IncompatibleDriverError(ConfigurationError):
    """
    Exception to be raised when the database driver given is for the wrong
    database engine. (i.e. asyncpg for a MySQL database)
    """


class ConnectorLoopError(ConnectorError):
    """
    Raised when an async Connector method is called from an event loop other
    than the one the Connector was initialized with.
    """


class CacheClosedError(ConnectorError):
    """
    Exception to be raised when a ConnectionInfoCache can not be accessed after
    it is closed.
    """


class ClosedConnectorError(ConnectorError):
    """
    Exception to be raised when a Connector is closed and connect method is
    called on it.
    """
