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
from typing import Any

from mock import patch
import pytest  # noqa F401 Needed to run the tests

from google.cloud.sql.relay.pg8000 import connect


def test_pg8000(kwargs: Any) -> None:
    """Test to verify that pg8000 gets to proper connection call."""
    with patch("pg8000.dbapi.connect") as mock_connect:
        mock_connect.return_value = True
        connection = connect("127.0.0.1", 5433, timeout=30, **kwargs)
        assert connection is True
        # verify that driver connection call would be made
        mock_connect.assert_called_once_with(
            "test-user",
            host="127.0.0.1",
            port=5433,
            database="test-db",
            password="test-password",
            timeout=30,
        )


def test_pg8000_drops_ssl_context(kwargs: Any) -> None:
    with patch("pg8000.dbapi.connect") as mock_connect:
        connect("127.0.0.1", 5433, ssl_context=object(), **kwargs)
        assert "ssl_context" not in mock_connect.call_args[1]
