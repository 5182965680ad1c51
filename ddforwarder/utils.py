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
import socket
import time
from functools import lru_cache

import psutil


@lru_cache(maxsize=None)
def get_hostname() -> str:
    return socket.gethostname()


def get_unix_time() -> int:
    return int(round(time.time()))


def get_process_start_time() -> int:
    """
    Creation time of the current process in unix seconds, used as the initial value of the status timestamps
    when the host doesn't pass its own startup time.
    """
    return int(round(psutil.Process().create_time()))
