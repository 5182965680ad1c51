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
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

Handler = Callable[..., Any]


class EventBus:
    """
    The minimal event emitter a host daemon exposes to its backends: handlers registered with on() are called
    synchronously, in registration order, by emit().
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def emit(self, event: str, *args: Any) -> List[Any]:
        return [handler(*args) for handler in list(self._handlers[event])]

    def listener_count(self, event: str) -> int:
        return len(self._handlers[event])
