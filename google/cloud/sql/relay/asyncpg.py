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
    import asyncpg


async def connect(host: str, port: int, **kwargs: Any) -> "asyncpg.Connection":
    """Helper function to create an asyncpg DB-API connection object.

    Args:
        host (str): Address of the local relay, always the loopback address.
        port (int): Port the local relay is listening on.
        kwargs: Keyword arguments for establishing asyncpg connection
            object to Cloud SQL instance.

    Returns:
        asyncpg.Connection: An asyncpg connection to the Cloud SQL
            instance.
    Raises:
        ImportError: The asyncpg module cannot be imported.
    """

    try:
        import asyncpg
    except ImportError:
        raise ImportError(
            'Unable to import module "asyncpg." Please install and try again.'
        )
    user = kwargs.pop("user")
    db = kwargs.pop("db")
    passwd = kwargs.pop("password", None)

    return await asyncpg.connect(
        user=user,
        database=db,
        password=passwd,
        host=host,
        port=port,
        ssl=False,
        **kwargs,
    )
