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
from datetime import datetime
import os

import pytest
import sqlalchemy

from google.cloud.sql.relay import Connector


def create_sqlalchemy_engine(
    instance_connection_name: str,
    user: str,
    password: str,
    db: str,
    ip_type: str = "public",
) -> tuple[sqlalchemy.engine.Engine, Connector]:
    """Creates a connection pool for a Cloud SQL instance and returns the pool
    and the connector. Callers are responsible for closing the pool and the
    connector.

    A sample invocation looks like:

        engine, connector = create_sqlalchemy_engine(
            inst_conn_name,
            user,
            password,
            db,
        )
        with engine.connect() as conn:
            time = conn.execute(sqlalchemy.text("SELECT NOW()")).fetchone()
            conn.commit()
            curr_time = time[0]
            # do something with query result
            connector.close()

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
    connector = Connector(instance_connection_name, ip_type=ip_type)

    # create SQLAlchemy connection pool
    engine = sqlalchemy.create_engine(
        "postgresql+pg8000://",
        creator=lambda: connector.connect(
            "pg8000",
            user=user,
            password=password,
            db=db,
        ),
    )
    return engine, connector


def test_pg8000_connection() -> None:
    """Basic test to get time from database."""
    inst_conn_name = os.environ["POSTGRES_CONNECTION_NAME"]
    user = os.environ["POSTGRES_USER"]
    password = os.environ["POSTGRES_PASS"]
    db = os.environ["POSTGRES_DB"]

    engine, connector = create_sqlalchemy_engine(inst_conn_name, user, password, db)
    with engine.connect() as conn:
        time = conn.execute(sqlalchemy.text("SELECT NOW()")).fetchone()
        conn.commit()
        curr_time = time[0]
        assert type(curr_time) is datetime
    connector.close()


@pytest.mark.private_ip
def test_pg8000_private_ip_connection() -> None:
    inst_conn_name = os.environ["POSTGRES_CONNECTION_NAME"]
    user = os.environ["POSTGRES_USER"]
    password = os.environ["POSTGRES_PASS"]
    db = os.environ["POSTGRES_DB"]

    engine, connector = create_sqlalchemy_engine(
        inst_conn_name, user, password, db, ip_type="private"
    )
    with engine.connect() as conn:
        res = conn.execute(sqlalchemy.text("SELECT 1")).fetchone()
        assert res[0] == 1
    connector.close()


def test_pg8000_iam_authn_connection() -> None:
    """Connect as the IAM database user with the login token as password."""
    inst_conn_name = os.environ["POSTGRES_CONNECTION_NAME"]
    user = os.environ["POSTGRES_IAM_USER"]
    db = os.environ["POSTGRES_DB"]

    with Connector(inst_conn_name, auth_type="IAM") as connector:
        conn = connector.connect("pg8000", user=user, db=db)
        cursor = conn.cursor()
        cursor.execute("SELECT current_user")
        assert cursor.fetchone()[0] == user.removesuffix(".gserviceaccount.com")
        conn.close()
