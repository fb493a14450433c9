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

from google.cloud.sql.relay.connection_info import ConnectionInfoCache
from google.cloud.sql.relay.connector import ConnectionEndpoint
from google.cloud.sql.relay.connector import Connector
from google.cloud.sql.relay.connector import create_async_connector
from google.cloud.sql.relay.credentials import GoogleAuthCredential
from google.cloud.sql.relay.credentials import MetadataServiceCredential
from google.cloud.sql.relay.credentials import ServiceAccountCredential
from google.cloud.sql.relay.credentials import TokenCache
from google.cloud.sql.relay.credentials import UserCredential
from google.cloud.sql.relay.enums import AuthTypes
from google.cloud.sql.relay.enums import IPTypes
from google.cloud.sql.relay.exceptions import AuthenticationError
from google.cloud.sql.relay.exceptions import CloudSQLConnectionError
from google.cloud.sql.relay.exceptions import CloudSQLIPTypeError
from google.cloud.sql.relay.exceptions import ConfigurationError
from google.cloud.sql.relay.exceptions import ConnectorError
from google.cloud.sql.relay.lazy import LazyRefreshCache
from google.cloud.sql.relay.relay import Relay
from google.cloud.sql.relay.version import __version__

__all__ = [
    "__version__",
    "create_async_connector",
    "AuthenticationError",
    "AuthTypes",
    "CloudSQLConnectionError",
    "CloudSQLIPTypeError",
    "ConfigurationError",
    "ConnectionEndpoint",
    "ConnectionInfoCache",
    "Connector",
    "ConnectorError",
    "GoogleAuthCredential",
    "IPTypes",
    "LazyRefreshCache",
    "MetadataServiceCredential",
    "Relay",
    "ServiceAccountCredential",
    "TokenCache",
    "UserCredential",
]
