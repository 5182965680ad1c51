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
import uuid
from typing import Optional


# Declare this function here (rather than in utils.py) to avoid circular imports.
def generate_random_id() -> str:
    return str(uuid.uuid4())


class State:
    def __init__(self, run_id: str = None) -> None:
        self._run_id: str = run_id or generate_random_id()
        self._cycle_id: Optional[str] = None

    def set_cycle_id(self, cycle_id: Optional[str]) -> None:
        self._cycle_id = cycle_id

    def init_new_cycle(self) -> None:
        self.set_cycle_id(generate_random_id())

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def cycle_id(self) -> Optional[str]:
        return self._cycle_id


class ForwarderStats:
    """
    The mutable part of a forwarder: when the last batch was delivered, when the last error happened and how many
    requests are currently in flight. Completion callbacks of overlapping flush cycles write here from worker
    threads, so every access goes through the lock.
    """

    def __init__(self, startup_time: int) -> None:
        self._lock = threading.Lock()
        self._last_flush = startup_time
        self._last_exception = startup_time
        self._pending_requests = 0

    @property
    def last_flush(self) -> int:
        with self._lock:
            return self._last_flush

    @property
    def last_exception(self) -> int:
        with self._lock:
            return self._last_exception

    @property
    def pending_requests(self) -> int:
        with self._lock:
            return self._pending_requests

    def record_flush(self, timestamp: int) -> None:
        with self._lock:
            self._last_flush = timestamp

    def record_exception(self, timestamp: int) -> None:
        with self._lock:
            self._last_exception = timestamp

    def request_started(self) -> None:
        with self._lock:
            self._pending_requests += 1

    def request_done(self) -> None:
        with self._lock:
            assert self._pending_requests > 0, "request_done() without request_started()"
            self._pending_requests -= 1


_state: Optional[State] = None


def init_state(run_id: str = None) -> State:
    global _state
    assert _state is None

    _state = State(run_id=run_id)
    return _state


def get_state_or_none() -> Optional[State]:
    """
    Can be used by library code that may run inside a host which never called init_state().
    """
    return _state
