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
import logging
import logging.handlers
import os
import re
import sys
import time
from logging import LogRecord
from typing import Any, Dict, MutableMapping, Tuple

from ddforwarder.state import get_state_or_none

CYCLE_ID_KEY = "cycle_id"
LOGGER_NAME_RE = re.compile(r"ddforwarder(?:\..+)?")
# keyword arguments that logging.Logger._log() accepts itself; anything else is a structured field.
_LOGGING_KWARGS = ("exc_info", "stack_info", "stacklevel", "extra")


def get_logger_adapter(logger_name: str) -> logging.LoggerAdapter:
    # Validate the name starts with ddforwarder (the root logger name), so logging parent logger propagation will work.
    assert LOGGER_NAME_RE.match(logger_name) is not None, "logger name must start with 'ddforwarder'"
    return ForwarderExtraAdapter(logging.getLogger(logger_name), {})


class ForwarderExtraAdapter(logging.LoggerAdapter):
    """
    Allows structured fields to be passed as keyword arguments, e.g. logger.info("Flushed", points=12).
    The fields end up in record.extra.
    """

    def get_extra(self, **kwargs: Any) -> Dict[str, Any]:
        extra = dict(kwargs)
        # here we add fields which change during the lifetime of the forwarder.
        assert CYCLE_ID_KEY not in extra
        state = get_state_or_none()
        if state is not None and state.cycle_id is not None:
            extra[CYCLE_ID_KEY] = state.cycle_id
        return extra

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOGGING_KWARGS}
        record_extra = dict(kwargs.pop("extra", None) or {})
        record_extra["extra"] = self.get_extra(**fields)
        kwargs["extra"] = record_extra
        return msg, kwargs


class _ExtraFormatter(logging.Formatter):
    FILTERED_EXTRA_KEYS = [CYCLE_ID_KEY]  # don't print those fields locally

    def format(self, record: LogRecord) -> str:
        formatted = super().format(record)

        formatted_extra = ", ".join(
            f"{k}={v}" for k, v in record.__dict__.get("extra", {}).items() if k not in self.FILTERED_EXTRA_KEYS
        )
        if formatted_extra:
            formatted = f"{formatted} ({formatted_extra})"

        return formatted


class _UTCFormatter(logging.Formatter):
    # Patch formatTime to be GMT (UTC) for all formatters,
    # see https://docs.python.org/3/library/logging.html?highlight=formattime#logging.Formatter.formatTime
    converter = time.gmtime


class ForwarderFormatter(_ExtraFormatter, _UTCFormatter):
    pass


def initial_root_logger_setup(
    stream_level: int,
    log_file_path: str,
    rotate_max_bytes: int,
    rotate_backup_count: int,
) -> logging.LoggerAdapter:
    logger_adapter = get_logger_adapter("ddforwarder")
    logger_adapter.setLevel(logging.DEBUG)

    stream_handler = logging.StreamHandler(stream=sys.stdout)
    stream_handler.setLevel(stream_level)
    if stream_level < logging.INFO:
        stream_handler.setFormatter(ForwarderFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
    else:
        stream_handler.setFormatter(ForwarderFormatter("[%(asctime)s] %(message)s", "%H:%M:%S"))
    logger_adapter.logger.addHandler(stream_handler)

    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path,
        maxBytes=rotate_max_bytes,
        backupCount=rotate_backup_count,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(ForwarderFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
    logger_adapter.logger.addHandler(file_handler)

    return logger_adapter
