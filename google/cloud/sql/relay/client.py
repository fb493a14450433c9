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

import asyncio
import datetime
import logging
from typing import Any, Optional, TYPE_CHECKING

import aiohttp
from cryptography.x509 import load_pem_x509_certificate

from google.cloud.sql.relay.connection_info import ConnectionInfo
from google.cloud.sql.relay.connection_name import ConnectionName
from google.cloud.sql.relay.enums import AuthTypes
from google.cloud.sql.relay.exceptions import CloudSQLConnectionError
from google.cloud.sql.relay.exceptions import ConfigurationError
from google.cloud.sql.relay.version import __version__ as version

if TYPE_CHECKING:
    from google.cloud.sql.relay.credentials import Credential

USER_AGENT: str = f"cloud-sql-relay-connector/{version}"
API_VERSION: str = "v1beta4"
DEFAULT_SERVICE_ENDPOINT: str = "https://sqladmin.googleapis.com"
HTTP_TIMEOUT: int = 30

logger = logging.getLogger(name=__name__)


def _format_user_agent(driver: Optional[str], custom: Optional[str]) -> str:
    agent = f"{USER_AGENT}+{driver}" if driver else USER_AGENT
    if custom and isinstance(custom, str):
        agent = f"{agent} {custom}"
    return agent


def _parse_ip_addresses(ret_dict: dict[str, Any]) -> dict[str, str]:
    """Build the map of IP type to address from a connectSettings response.

    PSC instances are reached through a DNS name rather than an IP. The
    instance scoped PSC entry of `dnsNames` wins; the legacy `dnsName` field
    is only used when `pscEnabled` is set, as other instance kinds also
    populate it.
    """
    ip_addresses = {
        ip["type"]: ip["ipAddress"]
        for ip in ret_dict.get("ipAddresses") or []
        if ip.get("type") in ("PRIMARY", "PRIVATE")
    }
    dns_name = next(
        (
            d["name"]
            for d in ret_dict.get("dnsNames") or []
            if d.get("connectionType") == "PRIVATE_SERVICE_CONNECT"
            and d.get("dnsScope") == "INSTANCE"
            and d.get("name")
        ),
        None,
    )
    if dns_name is None and ret_dict.get("pscEnabled"):
        dns_name = ret_dict.get("dnsName")
    # Remove trailing period from DNS name
    if dns_name:
        ip_addresses["PSC"] = dns_name.rstrip(".")
    return ip_addresses


class CloudSQLClient:
    def __init__(
        self,
        sqladmin_api_endpoint: Optional[str],
        quota_project: Optional[str],
        credentials: Credential,
        client: Optional[aiohttp.ClientSession] = None,
        driver: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Establishes the client to be used for Cloud SQL Admin API requests.

        Args:
            sqladmin_api_endpoint (str): Base URL to use when calling
                the Cloud SQL Admin API endpoints.
            quota_project (str): The Project ID for an existing Google Cloud
                project. The project specified is used for quota and
                billing purposes.
            credentials (Credential): Source of OAuth2 access tokens for the
                "admin" and "login" scopes.
            client (aiohttp.ClientSession): Async client used to make requests to
                Cloud SQL Admin APIs.
                Optional, defaults to None and creates new client.
            driver (str): Database driver to be used by the client.
            user_agent (str): Custom user agent appended to the default one.
        """
        user_agent = _format_user_agent(driver, user_agent)
        headers = {
            "x-goog-api-client": user_agent,
            "User-Agent": user_agent,
            "Content-Type": "application/json",
        }
        if quota_project:
            headers["x-goog-user-project"] = quota_project

        self._client = (
            client
            if client
            else aiohttp.ClientSession(
                headers=headers, timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT)
            )
        )
        self._credentials = credentials
        if sqladmin_api_endpoint is None:
            self._sqladmin_api_endpoint = DEFAULT_SERVICE_ENDPOINT
        else:
            self._sqladmin_api_endpoint = sqladmin_api_endpoint.rstrip("/")
        self._user_agent = user_agent

    async def _access_token(self, scope: str) -> str:
        # token exchanges are blocking HTTP calls, keep them off the loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._credentials.access_token, scope)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send an authorized request to the Cloud SQL Admin API and return
        the decoded JSON body.

        Raises:
            CloudSQLConnectionError: Transport failure, timeout, non-2xx
                response or an undecodable body.
        """
        headers = {
            "Authorization": f"Bearer {await self._access_token('admin')}",
        }
        try:
            async with self._client.request(
                method, url, headers=headers, **kwargs
            ) as resp:
                try:
                    ret_dict = await resp.json(content_type=None)
                except ValueError:
                    ret_dict = None
                if resp.status >= 400:
                    # if detailed error message is in json response, use as error message
                    message = None
                    error = ret_dict.get("error") if isinstance(ret_dict, dict) else None
                    if isinstance(error, dict):
                        message = error.get("message")
                    raise CloudSQLConnectionError(
                        f"API request failed ({resp.status}): "
                        f"{message or resp.reason}"
                    )
        except asyncio.TimeoutError as e:
            raise CloudSQLConnectionError(f"Request timed out: {url}") from e
        except aiohttp.ClientError as e:
            raise CloudSQLConnectionError(f"HTTP request failed: {e}") from e
        if not isinstance(ret_dict, dict):
            raise CloudSQLConnectionError(f"Invalid API response from {url}")
        return ret_dict

    async def _get_metadata(
        self,
        project: str,
        region: str,
        instance: str,
    ) -> dict[str, Any]:
        """Requests metadata from the Cloud SQL Instance and returns a dictionary
        containing the IP addresses and certificate authority of the Cloud SQL
        Instance.

        Args:
            project (str): A string representing the name of the project.
            region (str): A string representing the name of the region.
            instance (str): A string representing the name of the instance.

        Returns:
            A dictionary containing a dictionary of all IP addresses
            and their type, a string representing the certificate authority,
            the database version and the raw DNS name.

        Raises:
            ConfigurationError: Provided region does not match the region of the
                Cloud SQL instance.
            CloudSQLConnectionError: The response has no server CA certificate.
        """
        url = f"{self._sqladmin_api_endpoint}/sql/{API_VERSION}/projects/{project}/instances/{instance}/connectSettings"

        ret_dict = await self._request("GET", url)

        if ret_dict.get("region") != region:
            raise ConfigurationError(
                f"[{project}:{region}:{instance}]: Provided region was mismatched - "
                f"got region {region}, expected {ret_dict.get('region')}."
            )

        server_ca_cert = (ret_dict.get("serverCaCert") or {}).get("cert")
        if not server_ca_cert:
            raise CloudSQLConnectionError(
                f"[{project}:{region}:{instance}]: No valid CA certificate found "
                "for instance"
            )

        return {
            "ip_addresses": _parse_ip_addresses(ret_dict),
            "server_ca_cert": server_ca_cert,
            "database_version": ret_dict.get("databaseVersion", ""),
            "dns_name": ret_dict.get("dnsName"),
        }

    async def _get_ephemeral(
        self,
        project: str,
        instance: str,
        pub_key: str,
        auth_type: AuthTypes = AuthTypes.PASSWORD,
    ) -> tuple[str, datetime.datetime]:
        """Asynchronously requests an ephemeral certificate from the Cloud SQL Instance.

        Args:
            project (str):  A string representing the name of the project.
            instance (str):  string representing the name of the instance.
            pub_key (str): A string representing PEM-encoded RSA public key.
            auth_type (AuthTypes): With AuthTypes.IAM a "login" scoped token
                is embedded in the certificate for IAM database authentication.

        Returns:
            A tuple containing an ephemeral certificate from
            the Cloud SQL instance as well as a datetime object
            representing the expiration time of the certificate.
        """
        url = f"{self._sqladmin_api_endpoint}/sql/{API_VERSION}/projects/{project}/instances/{instance}:generateEphemeralCert"

        data = {"public_key": pub_key}

        if auth_type == AuthTypes.IAM:
            data["access_token"] = await self._access_token("login")

        ret_dict = await self._request("POST", url, json=data)

        ephemeral_cert = (ret_dict.get("ephemeralCert") or {}).get("cert")
        if not ephemeral_cert:
            raise CloudSQLConnectionError(
                f"[{project}:{instance}]: Failed to retrieve ephemeral certificate"
            )

        # decode cert to read expiration
        try:
            x509 = load_pem_x509_certificate(ephemeral_cert.encode("UTF-8"))
        except ValueError as e:
            raise CloudSQLConnectionError(
                f"[{project}:{instance}]: Invalid ephemeral certificate: {e}"
            ) from e
        return ephemeral_cert, x509.not_valid_after_utc

    async def get_connection_info(
        self,
        conn_name: ConnectionName,
        keys: asyncio.Future,
        auth_type: AuthTypes,
    ) -> ConnectionInfo:
        """Immediately performs a full refresh operation using the Cloud SQL
        Admin API.

        Metadata is fetched first so that a region mismatch or an unsupported
        engine fails before a certificate is requested.

        Args:
            conn_name (ConnectionName): The Cloud SQL instance's
                connection name.
            keys (asyncio.Future): A future to the client's public-private key
                pair.
            auth_type (AuthTypes): Whether an IAM database authentication
                certificate is being requested.

        Returns:
            ConnectionInfo: All the information required to connect securely to
                the Cloud SQL instance.
        Raises:
            ConfigurationError: Region mismatch, or IAM authentication requested
                for a database engine that does not support it.
        """
        priv_key, pub_key = await keys

        metadata = await self._get_metadata(
            conn_name.project,
            conn_name.region,
            conn_name.instance_name,
        )
        # check if automatic IAM database authn is supported for database engine
        if auth_type == AuthTypes.IAM and not metadata["database_version"].startswith(
            "POSTGRES"
        ):
            raise ConfigurationError(
                f"'{metadata['database_version']}' does not support "
                "automatic IAM authentication. It is only supported with "
                "Cloud SQL Postgres instances."
            )

        ephemeral_cert, expiration = await self._get_ephemeral(
            conn_name.project,
            conn_name.instance_name,
            pub_key,
            auth_type,
        )

        return ConnectionInfo(
            conn_name,
            ephemeral_cert,
            metadata["server_ca_cert"],
            priv_key,
            metadata["ip_addresses"],
            metadata["database_version"],
            expiration,
            dns_name=metadata["dns_name"],
        )

    async def close(self) -> None:
        """Close CloudSQLClient gracefully."""
        logger.debug("Waiting for Connector's http client to close")
        await self._client.close()
        logger.debug("Closed Connector's http client")
