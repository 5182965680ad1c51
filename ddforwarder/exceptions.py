#
# Copyright (C) 2023 Intel Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#


class ConfigurationError(Exception):
    """
    Raised on invalid forwarder configuration. Always raised during initialization, before any flush cycle runs.
    """

    pass


class APIError(Exception):
    def __init__(self, message: str, full_data: dict = None, status_code: int = None):
        self.message = message
        self.full_data = full_data
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status code {self.status_code})"
        return self.message
