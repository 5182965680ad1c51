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
import threading
from typing import Any, Dict, Iterator, List, Optional, Sequence

from pytest import fixture

from ddforwarder.backend import DatadogBackend
from ddforwarder.config import ForwarderConfig
from ddforwarder.metrics import DataPoint
from tests import INTERFACE_RULE

STARTUP_TIME = 1000


class FakeClient:
    """
    Stands in for DatadogAPIClient: records the submitted batches, optionally raises or blocks until released.
    """

    def __init__(self, error: Optional[Exception] = None, block: bool = False) -> None:
        self.batches: List[List[DataPoint]] = []
        self.error = error
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()
        self.closed = False

    def submit_series(self, batch: Sequence[DataPoint]) -> Dict:
        self.started.set()
        self.release.wait(5)
        self.batches.append(list(batch))
        if self.error is not None:
            raise self.error
        return {"status": "ok"}

    def close(self) -> None:
        self.closed = True


@fixture
def config_dict() -> Dict[str, Any]:
    return {
        "apiKey": "0123456789abcdef",
        "hostname": "test-host",
        "tags": ["env:test"],
        "flushIntervalMs": 10000,
        "metricTagRules": {INTERFACE_RULE: ["interface_name"]},
    }


@fixture
def forwarder_config(config_dict: Dict[str, Any]) -> ForwarderConfig:
    return ForwarderConfig.from_dict(config_dict)


@fixture
def fake_client() -> FakeClient:
    return FakeClient()


@fixture
def backend(forwarder_config: ForwarderConfig, fake_client: FakeClient) -> Iterator[DatadogBackend]:
    backend = DatadogBackend(forwarder_config, STARTUP_TIME, client=fake_client)  # type: ignore
    yield backend
    fake_client.release.set()
    backend.close()
