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
    import pg8000


def connect(host: str, port: int, **kwargs: Any) -> "pg8000.dbapi.Connection":
    """Helper function to create a pg8000 DB-API connection object.

    Args:
        host (str): Address of the local relay, always the loopback address.
        port (int): Port the local relay is listening on.
        kwargs: Additional arguments to pass to the pg8000 connect method.

    Returns:
        pg8000.dbapi.Connection: A pg8000 connection to the Cloud SQL
            instance.

    Raises:
        ImportError: The pg8000 module cannot be imported.
    """
    try:
        import pg8000
    except ImportError:
        raise ImportError(
            'Unable to import module "pg8000." Please install and try again.'
        )

    user = kwargs.pop("user")
    db = kwargs.pop("db")
    passwd = kwargs.pop("password", None)
    # the relay speaks plaintext, TLS is handled by the connector
    kwargs.pop("ssl_context", None)
    return pg8000.dbapi.connect(
        user,
        host=host,
        port=port,
        database=db,
        password=passwd,
        **kwargs,
    )
