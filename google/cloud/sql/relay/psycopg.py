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

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    import psycopg


def connect(host: str, port: int, **kwargs: Any) -> "psycopg.Connection":
    """Helper function to create a psycopg DB-API connection object.

    Args:
        host (str): Address of the local relay, always the loopback address.
        port (int): Port the local relay is listening on.
        kwargs: Additional arguments to pass to the psycopg connect method.

    Returns:
        psycopg.Connection: A psycopg connection to the Cloud SQL
            instance.

    Raises:
        ImportError: The psycopg module cannot be imported.
    """
    try:
        import psycopg
    except ImportError:
        raise ImportError(
            'Unable to import module "psycopg." Please install and try again.'
        )

    user = kwargs.pop("user")
    db = kwargs.pop("db")
    passwd = kwargs.pop("password", None)
    timeout = kwargs.pop("timeout", None)
    if timeout is not None:
        kwargs.setdefault("connect_timeout", timeout)

    # libpq must not negotiate TLS itself, the relay forwards raw bytes
    return psycopg.connect(
        host=host,
        port=port,
        dbname=db,
        user=user,
        password=passwd,
        sslmode="disable",
        **kwargs,
    )
