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

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
import logging
import os
from threading import Lock
from threading import Thread
from types import TracebackType
from typing import Any, Callable, Optional

import google.cloud.sql.relay.asyncpg as asyncpg
from google.cloud.sql.relay.client import CloudSQLClient
from google.cloud.sql.relay.client import DEFAULT_SERVICE_ENDPOINT
from google.cloud.sql.relay.connection_info import ConnectionInfo
from google.cloud.sql.relay.connection_name import _parse_connection_name
from google.cloud.sql.relay.credentials import resolve_credentials
from google.cloud.sql.relay.enums import AuthTypes
from google.cloud.sql.relay.enums import DriverMapping
from google.cloud.sql.relay.enums import IPTypes
from google.cloud.sql.relay.exceptions import ClosedConnectorError
from google.cloud.sql.relay.exceptions import CloudSQLConnectionError
from google.cloud.sql.relay.exceptions import ConnectorLoopError
from google.cloud.sql.relay.lazy import LazyRefreshCache
import google.cloud.sql.relay.pg8000 as pg8000
import google.cloud.sql.relay.psycopg as psycopg
from google.cloud.sql.relay.relay import LOCAL_HOST
from google.cloud.sql.relay.relay import Relay
from google.cloud.sql.relay.utils import format_iam_user
from google.cloud.sql.relay.utils import generate_keys

logger = logging.getLogger(name=__name__)

ASYNC_DRIVERS = ["asyncpg"]
SERVER_PROXY_PORT = 3307
_CLOSE_TIMEOUT = 3


@dataclass
class ConnectionEndpoint:
    """Everything needed to reach a Cloud SQL instance.

    `stream` opens a new TLS session to the instance and a new local relay
    on every call, and returns the started Relay; connect a plaintext client
    to ("127.0.0.1", relay.port). For endpoints returned by
    `get_connection_endpoint_async` it is a coroutine function.
    """

    ip_address: str
    server_ca_cert: str
    client_cert: str
    private_key: bytes
    stream: Callable[[], Any]


def _to_ip_type(ip_type: str | IPTypes) -> IPTypes:
    if isinstance(ip_type, str):
        return IPTypes._from_str(ip_type)
    return ip_type


def _to_auth_type(auth_type: str | AuthTypes) -> AuthTypes:
    if isinstance(auth_type, str):
        return AuthTypes._from_str(auth_type)
    return auth_type


class Connector:
    """Configure and create secure connections to a Cloud SQL instance."""

    def __init__(
        self,
        instance_connection_name: str,
        ip_type: str | IPTypes = IPTypes.PUBLIC,
        auth_type: str | AuthTypes = AuthTypes.PASSWORD,
        credentials: Optional[Any] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        sqladmin_api_endpoint: Optional[str] = None,
        quota_project: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: int = 30,
    ) -> None:
        """Initializes a Connector instance.

        Args:
            instance_connection_name (str): The instance connection name of the
                Cloud SQL instance to connect to. Takes the form of
                "project-id:region:instance-name"

                Example: "my-project:us-central1:my-instance"

            ip_type (str | IPTypes): The IP address type used to connect to
                the instance. Can be one of the following:
                IPTypes.PUBLIC ("PUBLIC"), IPTypes.PRIVATE ("PRIVATE"), or
                IPTypes.PSC ("PSC"). Default: IPTypes.PUBLIC

            auth_type (str | AuthTypes): The default database authentication
                method. AuthTypes.PASSWORD ("PASSWORD") or AuthTypes.IAM
                ("IAM"). Default: AuthTypes.PASSWORD

            credentials: An object with an `access_token(scope)` method, or a
                google.auth.credentials.Credentials object. If not specified,
                credentials are sourced from GOOGLE_APPLICATION_CREDENTIALS,
                the gcloud application default credentials file, and finally
                the metadata server.

            loop (asyncio.AbstractEventLoop): Event loop to run asyncio tasks, if
                not specified, defaults to creating new event loop on background
                thread.

            sqladmin_api_endpoint (str): Base URL to use when calling the Cloud SQL
                Admin API endpoint. Defaults to "https://sqladmin.googleapis.com",
                this argument should only be used in development.

            quota_project (str): The Project ID for an existing Google Cloud
                project. The project specified is used for quota and billing
                purposes. If not specified, defaults to the
                GOOGLE_CLOUD_QUOTA_PROJECT environment variable.

            user_agent (str): Custom user agent appended to Admin API requests.

            timeout (int): The time limit in seconds for opening the TLS
                session to the instance and for the database driver connect.

        Raises:
            ConfigurationError: Malformed instance connection name, unknown
                ip_type or auth_type, or unusable credentials.
        """
        self._conn_name = _parse_connection_name(instance_connection_name)
        self._ip_type = _to_ip_type(ip_type)
        self._auth_type = _to_auth_type(auth_type)
        self._credentials = resolve_credentials(credentials)
        # if event loop is given, use for background tasks
        if loop:
            self._loop: asyncio.AbstractEventLoop = loop
            self._thread: Optional[Thread] = None
            self._keys: asyncio.Future = loop.create_task(generate_keys())
        # if no event loop is given, spin up new loop in background thread
        else:
            self._loop = asyncio.new_event_loop()
            self._thread = Thread(target=self._loop.run_forever, daemon=True)
            self._thread.start()
            self._keys = asyncio.wrap_future(
                asyncio.run_coroutine_threadsafe(generate_keys(), self._loop),
                loop=self._loop,
            )
        # one cache per auth type, IAM certificates embed the login token
        self._cache: dict[AuthTypes, LazyRefreshCache] = {}
        self._client: Optional[CloudSQLClient] = None
        self._relays: list[Relay] = []
        self._closed: bool = False
        self._close_lock = Lock()
        self._timeout = timeout
        self._user_agent = user_agent
        if not sqladmin_api_endpoint:
            self._sqladmin_api_endpoint = DEFAULT_SERVICE_ENDPOINT
        else:
            self._sqladmin_api_endpoint = sqladmin_api_endpoint
        # check for quota project arg and then env var
        if quota_project:
            self._quota_project: Optional[str] = quota_project
        else:
            self._quota_project = os.environ.get("GOOGLE_CLOUD_QUOTA_PROJECT")

    @property
    def project(self) -> str:
        return self._conn_name.project

    @property
    def region(self) -> str:
        return self._conn_name.region

    @property
    def instance_name(self) -> str:
        return self._conn_name.instance_name

    @property
    def ip_type(self) -> IPTypes:
        return self._ip_type

    @property
    def auth_type(self) -> AuthTypes:
        return self._auth_type

    def _check_open(self) -> None:
        if self._closed:
            raise ClosedConnectorError(
                "Connection attempt failed because the connector has already been closed."
            )

    def _run(self, coro: Any) -> Any:
        """Run a coroutine on the connector's event loop and wait for it."""
        if self._closed:
            coro.close()
        self._check_open()
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def _check_usable(self) -> None:
        self._check_open()
        # check if event loop is running in current thread
        if self._loop != asyncio.get_running_loop():
            raise ConnectorLoopError(
                "Running event loop does not match 'connector._loop'. "
                "Async Connector methods must be called from the event loop "
                "the Connector was initialized with. If you need to connect "
                "across event loops, please use a new Connector object."
            )

    def _get_cache(
        self, auth_type: AuthTypes, driver: Optional[str] = None
    ) -> LazyRefreshCache:
        if self._client is None:
            # lazy init client as it has to be initialized in async context
            self._client = CloudSQLClient(
                self._sqladmin_api_endpoint,
                self._quota_project,
                self._credentials,
                driver=driver,
                user_agent=self._user_agent,
            )
        if auth_type not in self._cache:
            logger.debug(
                f"['{self._conn_name}']: Connection info added to cache "
                f"(auth type {auth_type.value})"
            )
            self._cache[auth_type] = LazyRefreshCache(
                self._conn_name,
                self._client,
                self._keys,
                self._ip_type,
                auth_type,
            )
        return self._cache[auth_type]

    async def _login_token(self) -> str:
        return await self._loop.run_in_executor(
            None, self._credentials.access_token, "login"
        )

    async def _open_relay(self, conn_info: ConnectionInfo) -> Relay:
        """Open a TLS session to the instance and start a relay for it."""
        self._check_open()
        ip_address = conn_info.ip_address
        logger.debug(
            f"['{self._conn_name}']: Connecting to {ip_address}:{SERVER_PROXY_PORT}"
        )
        try:
            # ssl.SSLError from a mismatched certificate and key is an OSError
            ctx = await conn_info.create_ssl_context()
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(ip_address, SERVER_PROXY_PORT, ssl=ctx),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise CloudSQLConnectionError(
                f"Failed to connect to Cloud SQL instance at "
                f"{ip_address}:{SERVER_PROXY_PORT}: timed out after {self._timeout}s"
            ) from e
        except OSError as e:
            raise CloudSQLConnectionError(
                f"Failed to connect to Cloud SQL instance at "
                f"{ip_address}:{SERVER_PROXY_PORT}: {e}"
            ) from e
        relay = Relay(reader, writer, name=str(self._conn_name))
        try:
            await relay.start()
        except Exception:
            await relay.stop()
            raise
        # connector may have closed while the TLS session was opening
        if self._closed:
            await relay.stop()
            self._check_open()
        # forget relays that already finished forwarding
        self._relays = [r for r in self._relays if r.alive]
        self._relays.append(relay)
        return relay

    def connect(self, driver: str = "pg8000", **kwargs: Any) -> Any:
        """Connect to the Cloud SQL instance.

        Opens a TLS session to the instance, starts a local relay for it and
        returns a database connection made through the relay.

        Args:
            driver (str): A string representing the database driver to connect
                with. Supported sync drivers are pg8000 and psycopg.

            **kwargs: `user`, `db` and `password` plus any driver-specific
                arguments to pass to the underlying driver .connect call.
                `auth_type` overrides the Connector's default.

        Returns:
            A DB-API connection to the specified Cloud SQL instance.
        """
        return self._run(self.connect_async(driver, **kwargs))

    async def connect_async(self, driver: str = "pg8000", **kwargs: Any) -> Any:
        """Connect asynchronously to the Cloud SQL instance.

        Async version of Connector.connect.

        With IAM authentication the `user` is formatted for the database
        (a trailing ".gserviceaccount.com" is removed) and a "login" scoped
        OAuth2 token is used as the password.

        Raises:
            KeyError: Unsupported database driver. Must be one of pg8000,
                psycopg and asyncpg.
            ClosedConnectorError: Connector has been closed.
            IncompatibleDriverError: Driver does not match the database engine.
        """
        self._check_usable()
        connect_func = {
            "pg8000": pg8000.connect,
            "psycopg": psycopg.connect,
            "asyncpg": asyncpg.connect,
        }
        # only accept supported database drivers
        try:
            connector: Callable = connect_func[driver]  # type: ignore
        except KeyError:
            raise KeyError(f"Driver '{driver}' is not supported.")

        auth_type = _to_auth_type(kwargs.pop("auth_type", self._auth_type))
        kwargs["timeout"] = kwargs.get("timeout", self._timeout)
        # Host and ssl options come from the relay, so we don't want the user
        # to specify them.
        kwargs.pop("host", None)
        kwargs.pop("ssl", None)
        kwargs.pop("port", None)

        cache = self._get_cache(auth_type, driver)
        conn_info = await cache.connect_info()
        # validate driver matches intended database engine
        DriverMapping.validate_engine(driver, conn_info.database_version)

        if auth_type == AuthTypes.IAM:
            formatted_user = format_iam_user(kwargs["user"])
            if formatted_user != kwargs["user"]:
                logger.debug(
                    f"['{self._conn_name}']: Truncated IAM database username "
                    f"from {kwargs['user']} to {formatted_user}"
                )
                kwargs["user"] = formatted_user
            kwargs["password"] = await self._login_token()

        try:
            relay = await self._open_relay(conn_info)
        except Exception:
            # with any exception, we attempt a force refresh, then throw the error
            await cache.force_refresh()
            raise
        try:
            # async drivers are unblocking and can be awaited directly
            if driver in ASYNC_DRIVERS:
                return await connector(LOCAL_HOST, relay.port, **kwargs)
            # Synchronous drivers are blocking and run using executor
            connect_partial = partial(connector, LOCAL_HOST, relay.port, **kwargs)
            return await self._loop.run_in_executor(None, connect_partial)
        except Exception:
            # no relay may outlive a failed connection attempt
            await relay.stop()
            await cache.force_refresh()
            raise

    def get_connection_endpoint(
        self, auth_type: Optional[str | AuthTypes] = None
    ) -> ConnectionEndpoint:
        """Return the connection details for the instance.

        The returned endpoint's `stream()` opens a fresh TLS session and relay
        on each call.
        """
        endpoint = self._run(self.get_connection_endpoint_async(auth_type))
        open_relay = endpoint.stream

        def stream() -> Relay:
            return self._run(open_relay())

        endpoint.stream = stream
        return endpoint

    async def get_connection_endpoint_async(
        self, auth_type: Optional[str | AuthTypes] = None
    ) -> ConnectionEndpoint:
        """Async version of Connector.get_connection_endpoint."""
        self._check_usable()
        auth = _to_auth_type(auth_type) if auth_type else self._auth_type
        conn_info = await self._get_cache(auth).connect_info()
        return ConnectionEndpoint(
            ip_address=conn_info.ip_address,  # type: ignore[arg-type]
            server_ca_cert=conn_info.server_ca_cert,
            client_cert=conn_info.client_cert,
            private_key=conn_info.private_key,
            stream=partial(self._open_relay, conn_info),
        )

    def ip_address(self) -> str:
        """Return the instance address for the configured IP type."""
        return self._run(self.ip_address_async())

    async def ip_address_async(self) -> str:
        self._check_usable()
        conn_info = await self._get_cache(self._auth_type).connect_info()
        return conn_info.ip_address  # type: ignore[return-value]

    def __enter__(self) -> Any:
        """Enter context manager by returning Connector object"""
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Exit context manager by closing Connector"""
        self.close()

    async def __aenter__(self) -> Any:
        """Enter async context manager by returning Connector object"""
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Exit async context manager by closing Connector"""
        await self.close_async()

    def close(self) -> None:
        """Close Connector by stopping relays and releasing resources.

        Idempotent and safe to call from several threads.
        """
        with self._close_lock:
            if self._loop.is_running():
                close_future = asyncio.run_coroutine_threadsafe(
                    self.close_async(), loop=self._loop
                )
                # Will attempt to safely shut down tasks for 3s
                close_future.result(timeout=_CLOSE_TIMEOUT)
            # if background thread exists for Connector, clean it up
            if self._thread:
                if self._loop.is_running():
                    # stop event loop running in background thread
                    self._loop.call_soon_threadsafe(self._loop.stop)
                # wait for thread to finish closing (i.e. loop to stop)
                self._thread.join()

    async def close_async(self) -> None:
        """Helper function to stop all relays, clear the connection info
        caches and close the aiohttp.ClientSession."""
        self._closed = True
        relays, self._relays = self._relays, []
        await asyncio.gather(*[relay.stop() for relay in relays])
        await asyncio.gather(*[cache.close() for cache in self._cache.values()])
        if self._client:
            await self._client.close()


async def create_async_connector(
    instance_connection_name: str,
    ip_type: str | IPTypes = IPTypes.PUBLIC,
    auth_type: str | AuthTypes = AuthTypes.PASSWORD,
    credentials: Optional[Any] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    sqladmin_api_endpoint: Optional[str] = None,
    quota_project: Optional[str] = None,
    user_agent: Optional[str] = None,
    timeout: int = 30,
) -> Connector:
    """Helper function to create Connector object for asyncio connections.

    Force use of Connector in an asyncio context. Auto-detect and use current
    thread's running event loop.

    Returns:
        A Connector instance configured with running event loop.
    """
    # if no loop given, automatically detect running event loop
    if loop is None:
        loop = asyncio.get_running_loop()
    return Connector(
        instance_connection_name,
        ip_type=ip_type,
        auth_type=auth_type,
        credentials=credentials,
        loop=loop,
        sqladmin_api_endpoint=sqladmin_api_endpoint,
        quota_project=quota_project,
        user_agent=user_agent,
        timeout=timeout,
    )
