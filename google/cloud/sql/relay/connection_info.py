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

import abc
from dataclasses import dataclass
import logging
import ssl
from typing import Optional, TYPE_CHECKING

from aiofiles.tempfile import TemporaryDirectory

from google.cloud.sql.relay.connection_name import ConnectionName
from google.cloud.sql.relay.exceptions import CloudSQLIPTypeError
from google.cloud.sql.relay.utils import write_to_file

if TYPE_CHECKING:
    import datetime

    from google.cloud.sql.relay.enums import IPTypes

logger = logging.getLogger(name=__name__)


class ConnectionInfoCache(abc.ABC):
    """Abstract class for Connector connection info caches."""

    @abc.abstractmethod
    async def connect_info(self) -> ConnectionInfo:
        pass

    @abc.abstractmethod
    async def force_refresh(self) -> None:
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        pass

    @property
    @abc.abstractmethod
    def closed(self) -> bool:
        pass


@dataclass(frozen=True)
class ConnectionInfo:
    """Contains all necessary information to connect securely to the
    server-side proxy running on a Cloud SQL instance.

    Instances are never mutated; a refresh replaces the whole object.
    """

    conn_name: ConnectionName
    client_cert: str
    server_ca_cert: str
    private_key: bytes
    ip_addrs: dict[str, str]
    database_version: str
    expiration: datetime.datetime
    dns_name: Optional[str] = None
    ip_address: Optional[str] = None

    async def create_ssl_context(self) -> ssl.SSLContext:
        """Constructs a mutual TLS context for the given connection info.

        Only TLSv1.3 is accepted and the server is verified against the
        instance's server CA alone, the system trust store is not loaded.
        """
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        # the server certificate's CN is the instance name, not a hostname
        context.check_hostname = False
        context.verify_mode = ssl.CERT_REQUIRED
        context.minimum_version = ssl.TLSVersion.TLSv1_3

        # tmpdir and its contents are automatically deleted after the CA cert
        # and ephemeral cert are loaded into the SSLcontext. The values
        # need to be written to files in order to be loaded by the SSLContext
        async with TemporaryDirectory() as tmpdir:
            ca_filename, cert_filename, key_filename = await write_to_file(
                tmpdir, self.server_ca_cert, self.client_cert, self.private_key
            )
            context.load_cert_chain(cert_filename, keyfile=key_filename)
            context.load_verify_locations(cafile=ca_filename)
        return context

    def get_preferred_ip(self, ip_type: IPTypes) -> str:
        """Returns the address for the instance matching ip_type. If the
        instance has no address of that type, an error is raised."""
        if ip_type.value in self.ip_addrs:
            return self.ip_addrs[ip_type.value]
        raise CloudSQLIPTypeError(
            f"Cannot connect to instance, {ip_type.name} IP address not found",
            code=f"ENO{ip_type.name}IPADDRESS",
        )
