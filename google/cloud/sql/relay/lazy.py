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

import asyncio
import dataclasses
from datetime import datetime
from datetime import timedelta
from datetime import timezone
import logging
from typing import Optional

from google.cloud.sql.relay.client import CloudSQLClient
from google.cloud.sql.relay.connection_info import ConnectionInfo
from google.cloud.sql.relay.connection_info import ConnectionInfoCache
from google.cloud.sql.relay.connection_name import ConnectionName
from google.cloud.sql.relay.enums import AuthTypes
from google.cloud.sql.relay.enums import IPTypes
from google.cloud.sql.relay.exceptions import CacheClosedError

logger = logging.getLogger(name=__name__)

# _refresh_buffer is the amount of time before the cached certificate expires
# that it is considered stale and replaced on next use.
_refresh_buffer: int = 5 * 60  # 5 minutes


class LazyRefreshCache(ConnectionInfoCache):
    """Cache that refreshes connection info when a caller requests a connection.

    Only refreshes the cache when a new connection is requested and the current
    certificate is close to or already expired. The lock is held for the whole
    fetch-metadata, fetch-certificate and swap sequence, so concurrent callers
    on a cold or stale cache share a single refresh.
    """

    def __init__(
        self,
        conn_name: ConnectionName,
        client: CloudSQLClient,
        keys: asyncio.Future,
        ip_type: IPTypes = IPTypes.PUBLIC,
        auth_type: AuthTypes = AuthTypes.PASSWORD,
    ) -> None:
        """Initializes a LazyRefreshCache instance.

        Args:
            conn_name (ConnectionName): The Cloud SQL instance's
                connection name.
            client (CloudSQLClient): The Cloud SQL Client instance.
            keys (asyncio.Future): A future to the client's public-private key
                pair.
            ip_type (IPTypes): The IP type the resolved address is selected by.
            auth_type (AuthTypes): The authentication method the ephemeral
                certificate is requested for.
        """
        self._conn_name = conn_name
        self._ip_type = ip_type
        self._auth_type = auth_type
        self._keys = keys
        self._client = client
        self._lock = asyncio.Lock()
        self._cached: Optional[ConnectionInfo] = None
        self._needs_refresh = False
        self._closed = False

    @property
    def conn_name(self) -> ConnectionName:
        return self._conn_name

    @property
    def closed(self) -> bool:
        return self._closed

    def _is_fresh(self, info: ConnectionInfo) -> bool:
        # Pad expiration with a buffer to give the client plenty of time to
        # establish a connection to the server with the certificate.
        return datetime.now(timezone.utc) < (
            info.expiration - timedelta(seconds=_refresh_buffer)
        )

    async def force_refresh(self) -> None:
        """
        Invalidates the cache and configures the next call to
        connect_info() to retrieve a fresh ConnectionInfo instance.
        """
        async with self._lock:
            self._needs_refresh = True

    async def connect_info(self) -> ConnectionInfo:
        """Retrieves ConnectionInfo instance for establishing a secure
        connection to the Cloud SQL instance.

        Raises:
            CacheClosedError: The cache has been closed.
            CloudSQLIPTypeError: The instance has no address of the
                configured IP type.
        """
        async with self._lock:
            if self._closed:
                raise CacheClosedError(
                    f"['{self._conn_name}']: Connection info cache is closed"
                )
            if self._cached and not self._needs_refresh and self._is_fresh(self._cached):
                logger.debug(
                    f"['{self._conn_name}']: Connection info "
                    "is still valid, using cached info"
                )
                return self._cached
            logger.debug(
                f"['{self._conn_name}']: Connection info " "refresh operation started"
            )
            try:
                conn_info = await self._client.get_connection_info(
                    self._conn_name,
                    self._keys,
                    self._auth_type,
                )
                conn_info = dataclasses.replace(
                    conn_info, ip_address=conn_info.get_preferred_ip(self._ip_type)
                )
            except Exception as e:
                logger.debug(
                    f"['{self._conn_name}']: Connection info "
                    f"refresh operation failed: {str(e)}"
                )
                raise
            logger.debug(
                f"['{self._conn_name}']: Connection info "
                "refresh operation completed successfully"
            )
            logger.debug(
                f"['{self._conn_name}']: Current certificate "
                f"expiration = {str(conn_info.expiration)}"
            )
            self._cached = conn_info
            self._needs_refresh = False
            return conn_info

    async def close(self) -> None:
        """Discard the cached connection info. Idempotent."""
        async with self._lock:
            self._closed = True
            self._cached = None
