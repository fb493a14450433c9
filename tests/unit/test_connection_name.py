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

import pytest  # noqa F401 Needed to run the tests

from google.cloud.sql.relay.connection_name import _parse_connection_name
from google.cloud.sql.relay.connection_name import ConnectionName
from google.cloud.sql.relay.exceptions import ConfigurationError


def test_ConnectionName() -> None:
    conn_name = ConnectionName("project", "region", "instance")
    # test class attributes are set properly
    assert conn_name.project == "project"
    assert conn_name.region == "region"
    assert conn_name.instance_name == "instance"
    # test ConnectionName str() method prints instance connection name
    assert str(conn_name) == "project:region:instance"


def test_parse_connection_name() -> None:
    assert _parse_connection_name("my-project:us-central1:my-instance") == (
        ConnectionName("my-project", "us-central1", "my-instance")
    )


@pytest.mark.parametrize(
    "connection_name",
    [
        "",
        "project",
        "project:instance",
        "project:region:",
        ":region:instance",
        "project::instance",
        "domain-prefix:project:region:instance",
    ],
)
def test_parse_connection_name_bad_names(connection_name: str) -> None:
    """
    Test that _parse_connection_name raises ConfigurationError for anything
    but exactly three non-empty segments.
    """
    with pytest.raises(ConfigurationError) as exc_info:
        _parse_connection_name(connection_name)
    assert exc_info.value.args[0] == (
        f"Invalid instance connection name '{connection_name}'. "
        "Expected format: PROJECT:REGION:INSTANCE"
    )
    assert exc_info.value.code == "ECONFIG"
    # configuration errors are also ValueErrors
    assert isinstance(exc_info.value, ValueError)
