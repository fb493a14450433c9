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

import logging
import os

from flask import Flask
import sqlalchemy

from google.cloud.sql.relay import AuthTypes
from google.cloud.sql.relay import Connector

logger = logging.getLogger(name=__name__)

# Initialize Flask app
app = Flask(__name__)

# The Connector and SQLAlchemy engines are created lazily on first use so the
# Cloud Run service starts fast. A single Connector serves both engines: it
# keeps one certificate cache per authentication method and every pooled
# connection gets its own TLS session and local relay.
connector = None
iam_engine = None
password_engine = None


def get_connector() -> Connector:
    global connector
    if connector is None:
        connector = Connector(
            os.environ["INSTANCE_CONNECTION_NAME"],
            ip_type=os.environ.get("IP_TYPE", "PUBLIC"),
        )
    return connector


def get_iam_connection():
    """Creates a database connection using IAM authentication."""
    return get_connector().connect(
        "pg8000",
        user=os.environ["DB_IAM_USER"],  # IAM service account email
        db=os.environ["DB_NAME"],
        auth_type=AuthTypes.IAM,
    )


def get_password_connection():
    """Creates a database connection using password authentication."""
    return get_connector().connect(
        "pg8000",
        user=os.environ["DB_USER"],
        password=os.environ["DB_PASSWORD"],
        db=os.environ["DB_NAME"],
    )


def connect_with_password() -> sqlalchemy.engine.base.Connection:
    global password_engine
    if password_engine is None:
        password_engine = sqlalchemy.create_engine(
            "postgresql+pg8000://",
            creator=get_password_connection,
        )
    return password_engine.connect()


def connect_with_iam() -> sqlalchemy.engine.base.Connection:
    global iam_engine
    if iam_engine is None:
        iam_engine = sqlalchemy.create_engine(
            "postgresql+pg8000://",
            creator=get_iam_connection,
        )
    return iam_engine.connect()


@app.route("/")
def password_auth_index():
    try:
        with connect_with_password() as conn:
            result = conn.execute(sqlalchemy.text("SELECT 1")).fetchall()
            return f"Database connection successful (password authentication), result: {result}"
    except Exception:
        logger.exception("password authentication connection failed")
        return "Error connecting to the database (password authentication)", 500


@app.route("/iam")
def iam_auth_index():
    try:
        with connect_with_iam() as conn:
            result = conn.execute(sqlalchemy.text("SELECT 1")).fetchall()
            return f"Database connection successful (IAM authentication), result: {result}"
    except Exception:
        logger.exception("IAM authentication connection failed")
        return "Error connecting to the database (IAM authentication)", 500


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 8080)))
