# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from dataclasses import dataclass
import re

from google.cloud.sql.relay.exceptions import ConfigurationError

# Instance connection name is the format <PROJECT>:<REGION>:<INSTANCE_NAME>
CONN_NAME_REGEX = re.compile("([^:]+):([^:]+):([^:]+)")


@dataclass(frozen=True)
class ConnectionName:
    """ConnectionName represents a Cloud SQL instance's "instance connection name".

    Takes the format "<PROJECT>:<REGION>:<INSTANCE_NAME>".
    """

    project: str
    region: str
    instance_name: str

    def __str__(self) -> str:
        return f"{self.project}:{self.region}:{self.instance_name}"


def _parse_connection_name(connection_name: str) -> ConnectionName:
    match = CONN_NAME_REGEX.fullmatch(str(connection_name))
    if match is None:
        raise ConfigurationError(
            f"Invalid instance connection name '{connection_name}'. "
            "Expected format: PROJECT:REGION:INSTANCE"
        )
    return ConnectionName(*match.groups())
