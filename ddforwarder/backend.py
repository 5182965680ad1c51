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
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from requests import RequestException, Timeout

from ddforwarder.client import DatadogAPIClient
from ddforwarder.config import ForwarderConfig
from ddforwarder.exceptions import APIError
from ddforwarder.log import ForwarderExtraAdapter, get_logger_adapter
from ddforwarder.metrics import DataPoint, MetricsSnapshot
from ddforwarder.state import ForwarderStats
from ddforwarder.translate import SnapshotTranslator
from ddforwarder.utils import get_unix_time

BACKEND_NAME = "datadog"
# overlapping flush cycles each get their own worker, nothing waits on a slow request
MAX_CONCURRENT_REQUESTS = 4

WriteCallback = Callable[[Optional[Exception], str, str, Any], Any]

logger = get_logger_adapter(__name__)


class DatadogBackend:
    def __init__(
        self,
        config: ForwarderConfig,
        startup_time: int,
        client: DatadogAPIClient = None,
        logger_adapter: logging.LoggerAdapter = None,
    ):
        self._config = config
        self._logger = logger_adapter if logger_adapter is not None else logger
        self._stats = ForwarderStats(startup_time)
        self._translator = SnapshotTranslator(config)
        self._client = (
            client
            if client is not None
            else DatadogAPIClient(
                api_key=config.api_key,
                api_host=config.api_host,
                curlify_requests=config.curlify_requests,
                timeout=config.request_timeout,
            )
        )
        self._executor = ThreadPoolExecutor(max_workers=MAX_CONCURRENT_REQUESTS, thread_name_prefix="ddforwarder")

    @property
    def config(self) -> ForwarderConfig:
        return self._config

    @property
    def stats(self) -> ForwarderStats:
        return self._stats

    def _log_error(self, message: str, **kwargs: Any) -> None:
        if self._config.debug:
            self._logger.exception(message, **kwargs)
        else:
            self._logger.error(message, **kwargs)

    def flush(self, timestamp: int, metrics: Union[MetricsSnapshot, Mapping[str, Any]]) -> Optional[Future]:
        """
        Translates the snapshot and dispatches it. Returns immediately with the future of the request (None if no
        request was made); the host doesn't have to wait on it.
        Never raises: errors are logged and recorded in the stats.
        """
        try:
            snapshot = metrics if isinstance(metrics, MetricsSnapshot) else MetricsSnapshot.from_dict(metrics)
            batch = self._translator.translate(snapshot, int(timestamp))
        except Exception as e:
            self._log_error(f"Skipping, failed to build the series payload: {e}")
            self._stats.record_exception(get_unix_time())
            return None

        self._stats.request_started()
        try:
            return self._executor.submit(self._post_series, batch)
        except RuntimeError as e:
            # the executor was shut down
            self._stats.request_done()
            self._log_error(f"Skipping, cannot dispatch data to Datadog: {e}")
            self._stats.record_exception(get_unix_time())
            return None

    def _post_series(self, batch: Sequence[DataPoint]) -> bool:
        try:
            self._client.submit_series(batch)
        except Timeout:
            self._log_error("Skipping, sending data to Datadog timed out")
        except APIError as e:
            self._log_error(f"Skipping, Datadog rejected the data: {e}", points=len(batch))
        except RequestException as e:
            self._log_error(f"Skipping, cannot send data to Datadog: {e}")
        except Exception:
            self._logger.exception("Unexpected error while sending data to Datadog")
        else:
            self._stats.record_flush(get_unix_time())
            self._logger.debug("Sent series to Datadog", points=len(batch))
            return True
        finally:
            self._stats.request_done()

        self._stats.record_exception(get_unix_time())
        return False

    def status(self, write_cb: WriteCallback) -> None:
        write_cb(None, BACKEND_NAME, "last_flush", self._stats.last_flush)
        write_cb(None, BACKEND_NAME, "last_exception", self._stats.last_exception)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._client.close()


def _as_logger_adapter(host_logger: Union[logging.Logger, logging.LoggerAdapter, None]) -> logging.LoggerAdapter:
    if host_logger is None:
        return logger
    if isinstance(host_logger, ForwarderExtraAdapter):
        return host_logger
    if isinstance(host_logger, logging.LoggerAdapter):
        host_logger = host_logger.logger
    return ForwarderExtraAdapter(host_logger, {})


def setup_backend(
    startup_time: int,
    config: Mapping[str, Any],
    events: Any,
    host_logger: Union[logging.Logger, logging.LoggerAdapter, None] = None,
) -> DatadogBackend:
    """
    Registers the "flush" and "status" handlers on the host's event bus (anything with an on(event, handler) method)
    and returns the backend, so the caller can close it on shutdown.
    Raises ConfigurationError on invalid configuration, before any handler is registered.
    """
    forwarder_config = ForwarderConfig.from_dict(config)
    backend = DatadogBackend(forwarder_config, startup_time, logger_adapter=_as_logger_adapter(host_logger))

    events.on("flush", backend.flush)
    events.on("status", backend.status)
    return backend


def init(
    startup_time: int,
    config: Mapping[str, Any],
    events: Any,
    host_logger: Union[logging.Logger, logging.LoggerAdapter, None] = None,
) -> bool:
    """
    Entry point for the host daemon, which only checks the backend loaded. Returns True once the handlers are
    registered.
    """
    setup_backend(startup_time, config, events, host_logger)
    return True
