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
import os

import sqlalchemy
import sqlalchemy.ext.asyncio

from google.cloud.sql.relay import Connector
from google.cloud.sql.relay import create_async_connector


async def create_sqlalchemy_engine(
    instance_connection_name: str,
    user: str,
    password: str,
    db: str,
    ip_type: str = "public",
) -> tuple[sqlalchemy.ext.asyncio.engine.AsyncEngine, Connector]:
    """Creates an async connection pool for a Cloud SQL instance and returns
    the pool and the connector. Callers are responsible for closing the pool
    and the connector.

    Args:
        instance_connection_name (str):
            The instance connection name specifies the instance relative to the
            project and region. For example: "my-project:my-region:my-instance"
        user (str):
            The database user name, e.g., postgres
        password (str):
            The database user's password, e.g., secret-password
        db (str):
            The name of the database, e.g., mydb
        ip_type (str):
            The IP type of the Cloud SQL instance to connect to. Can be one
            of "public", "private", or "psc".
    """
    connector = Connector(
        instance_connection_name, ip_type=ip_type, loop=asyncio.get_running_loop()
    )

    # create SQLAlchemy connection pool
    engine = sqlalchemy.ext.asyncio.create_async_engine(
        "postgresql+asyncpg://",
        async_creator=lambda: connector.connect_async(
            "asyncpg",
            user=user,
            password=password,
            db=db,
        ),
        execution_options={"isolation_level": "AUTOCOMMIT"},
    )
    return engine, connector


async def test_sqlalchemy_connection_with_asyncpg() -> None:
    """Basic test to get time from database."""
    inst_conn_name = os.environ["POSTGRES_CONNECTION_NAME"]
    user = os.environ["POSTGRES_USER"]
    password = os.environ["POSTGRES_PASS"]
    db = os.environ["POSTGRES_DB"]

    pool, connector = await create_sqlalchemy_engine(inst_conn_name, user, password, db)

    async with pool.connect() as conn:
        res = (await conn.execute(sqlalchemy.text("SELECT 1"))).fetchone()
        assert res[0] == 1

    await pool.dispose()
    await connector.close_async()


async def test_connection_endpoint_stream() -> None:
    """Drive asyncpg against a relay obtained from the connection endpoint."""
    import asyncpg

    inst_conn_name = os.environ["POSTGRES_CONNECTION_NAME"]
    async with await create_async_connector(inst_conn_name) as connector:
        endpoint = await connector.get_connection_endpoint_async()
        relay = await endpoint.stream()
        conn = await asyncpg.connect(
            host="127.0.0.1",
            port=relay.port,
            user=os.environ["POSTGRES_USER"],
            password=os.environ["POSTGRES_PASS"],
            database=os.environ["POSTGRES_DB"],
            ssl=False,
        )
        assert await conn.fetchval("SELECT 1") == 1
        await conn.close()
