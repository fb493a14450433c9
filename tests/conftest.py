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

import asyncio
import logging
from typing import Any, AsyncGenerator

from aiohttp import web
import pytest  # noqa F401 Needed to run the tests
from unit.mocks import FakeCredentials  # type: ignore
from unit.mocks import FakeCSQLInstance  # type: ignore

from google.cloud.sql.relay.client import CloudSQLClient
from google.cloud.sql.relay.connection_name import ConnectionName
from google.cloud.sql.relay.lazy import LazyRefreshCache
from google.cloud.sql.relay.utils import generate_keys

logger = logging.getLogger(name=__name__)

INSTANCE_PORT = 3307


@pytest.fixture
def fake_credentials() -> FakeCredentials:
    return FakeCredentials()


@pytest.fixture
def fake_instance() -> FakeCSQLInstance:
    return FakeCSQLInstance()


@pytest.fixture
def conn_name(fake_instance: FakeCSQLInstance) -> ConnectionName:
    return ConnectionName(fake_instance.project, fake_instance.region, fake_instance.name)


@pytest.fixture
def kwargs() -> Any:
    """Database connection keyword arguments."""
    kwargs = {"user": "test-user", "db": "test-db", "password": "test-password"}
    return kwargs


@pytest.fixture
async def fake_client(
    fake_credentials: FakeCredentials,
    fake_instance: FakeCSQLInstance,
    aiohttp_client: Any,
) -> CloudSQLClient:
    app = web.Application()
    # add SQL Server instance for IAM engine checks
    sqlserver_instance = FakeCSQLInstance(
        name="sqlserver-instance", db_version="SQLSERVER_2019_STANDARD"
    )
    for instance in (fake_instance, sqlserver_instance):
        base = f"/sql/v1beta4/projects/{instance.project}/instances/{instance.name}"
        app.router.add_get(f"{base}/connectSettings", instance.connect_settings)
        app.router.add_post(
            f"{base}:generateEphemeralCert", instance.generate_ephemeral
        )
    client_session = await aiohttp_client(app)
    client = CloudSQLClient("", "", fake_credentials, client=client_session)
    # add instances to client to control cert expiration etc.
    client.instance = fake_instance
    client.sqlserver_instance = sqlserver_instance
    return client


@pytest.fixture
async def cache(
    fake_client: CloudSQLClient, conn_name: ConnectionName
) -> AsyncGenerator[LazyRefreshCache, None]:
    keys = asyncio.create_task(generate_keys())
    cache = LazyRefreshCache(conn_name, client=fake_client, keys=keys)
    yield cache
    await cache.close()


@pytest.fixture
async def echo_server() -> AsyncGenerator[tuple[str, int], None]:
    """A fixture that starts a plaintext asyncio echo server."""

    async def handle_echo(
        reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        while True:
            data = await reader.read(100)
            if not data:
                break
            writer.write(data)
            await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle_echo, "127.0.0.1", 0)
    addr = server.sockets[0].getsockname()
    yield addr
    server.close()


@pytest.fixture
async def instance_server(
    fake_instance: FakeCSQLInstance,
) -> AsyncGenerator[list[bytes], None]:
    """Run a local TLS 1.3 echo server standing in for the instance's
    server-side proxy on 127.0.0.1:3307. Yields the list of chunks received."""
    received: list[bytes] = []
    context = await fake_instance.server_ssl_context()

    async def handler(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        logger.debug("Received fake instance connection")
        try:
            while True:
                data = await reader.read(1024)
                if not data:
                    break
                received.append(data)
                writer.write(data)
                await writer.drain()
        except (OSError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(
        handler, host="127.0.0.1", port=INSTANCE_PORT, ssl=context
    )
    logger.debug(f"Listening on 127.0.0.1:{INSTANCE_PORT}")
    yield received
    server.close()
