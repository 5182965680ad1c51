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
import json
import logging
import sys
import time
from pathlib import Path
from threading import Event
from typing import Any, Dict, Optional

import configargparse

from ddforwarder import __version__
from ddforwarder.backend import DatadogBackend, setup_backend
from ddforwarder.client import DEFAULT_API_HOST
from ddforwarder.config import DEFAULT_FLUSH_INTERVAL_MS
from ddforwarder.events import EventBus
from ddforwarder.exceptions import ConfigurationError
from ddforwarder.forwarder_types import percentile, positive_float, positive_integer, tag_rule, timespan_ms
from ddforwarder.log import get_logger_adapter, initial_root_logger_setup
from ddforwarder.metrics import MetricsSnapshot
from ddforwarder.state import State, init_state
from ddforwarder.utils import get_process_start_time, get_unix_time

logger: logging.LoggerAdapter = get_logger_adapter(__name__)

DEFAULT_LOG_FILE = "./ddforwarder.log"
DEFAULT_LOG_MAX_SIZE = 1024 * 1024 * 5
DEFAULT_LOG_BACKUP_COUNT = 1


def read_snapshot(path: Path) -> MetricsSnapshot:
    with path.open() as f:
        return MetricsSnapshot.from_dict(json.load(f))


def build_backend_config(args: configargparse.Namespace) -> Dict[str, Any]:
    return {
        "apiKey": args.api_key,
        "apiHost": args.api_host,
        "prefix": args.prefix,
        "tags": args.tags or [],
        "metricTagRules": args.tag_rules or [],
        "hostname": args.hostname,
        "flushIntervalMs": args.flush_interval,
        "debug": args.verbose,
        "percentileThresholds": args.percentile_thresholds,
        "counterTotals": args.counter_totals,
        "useTimerData": args.use_timer_data,
        "requestTimeout": args.request_timeout,
        "curlifyRequests": args.curlify_requests,
    }


class Forwarder:
    """
    Plays the part of the host daemon: reads a snapshot file and emits it as a flush event.
    """

    def __init__(self, backend: DatadogBackend, events: EventBus, state: State, snapshot_path: Path):
        self._backend = backend
        self._events = events
        self._state = state
        self._snapshot_path = snapshot_path
        self._stop_event = Event()

    def __enter__(self) -> "Forwarder":
        return self

    def __exit__(self, *args: Any) -> None:
        self._backend.close()

    def _flush(self) -> None:
        snapshot = read_snapshot(self._snapshot_path)
        for future in self._events.emit("flush", get_unix_time(), snapshot):
            if future is not None and not future.result():
                logger.warning("Flush failed, see the errors above")

    def run_single(self) -> None:
        with self:
            # In case of single run mode, use the same id for run_id and cycle_id
            self._state.set_cycle_id(self._state.run_id)
            self._flush()
            self._state.set_cycle_id(None)

    def run_continuous(self) -> None:
        interval = self._backend.config.flush_interval_seconds
        with self:
            while not self._stop_event.is_set():
                self._state.init_new_cycle()
                flush_start = time.monotonic()

                try:
                    self._flush()
                except Exception:
                    logger.exception("Flush cycle failed!")

                # wait for one interval
                self._stop_event.wait(max(interval - (time.monotonic() - flush_start), 0))

            self._state.set_cycle_id(None)

    def stop(self) -> None:
        self._stop_event.set()


def print_status(events: EventBus) -> None:
    def write(error: Optional[Exception], backend_name: str, key: str, value: Any) -> None:
        print(f"{backend_name}.{key}: {value}")

    events.emit("status", write)


def parse_cmd_args() -> configargparse.Namespace:
    parser = configargparse.ArgumentParser(
        description="Forwards StatsD metric snapshots to the Datadog series API.",
        auto_env_var_prefix="ddforwarder_",
        add_config_file_help=True,
        add_env_var_help=False,
    )
    parser.add_argument("--config", is_config_file=True, help="Config file path")
    parser.add_argument(
        "--snapshot-file",
        required=True,
        type=Path,
        help="Path of a JSON metrics snapshot ({\"counters\": ..., \"gauges\": ..., \"timers\": ...}) to flush",
    )

    connectivity = parser.add_argument_group("connectivity")
    connectivity.add_argument("--api-key", help="Datadog API key")
    connectivity.add_argument(
        "--api-host", default=DEFAULT_API_HOST, help="Datadog API address (default: %(default)s)"
    )
    connectivity.add_argument(
        "--request-timeout",
        type=positive_float,
        default=None,
        help="Timeout for requests to the API in seconds (default: no timeout)",
    )
    connectivity.add_argument(
        "--curlify-requests", help="Log cURL commands for HTTP requests (used for debugging)", action="store_true"
    )

    translation = parser.add_argument_group("translation")
    translation.add_argument("--prefix", help="Prefix for all metric names")
    translation.add_argument(
        "--tag", action="append", dest="tags", help="Tag added to all metrics, f.e. env:prod (can be repeated)"
    )
    translation.add_argument(
        "--tag-rule",
        action="append",
        dest="tag_rules",
        type=tag_rule,
        help="PATTERN=label1,label2: extract tags from the capture groups of metric names matching PATTERN."
        " The first matching rule wins (can be repeated)",
    )
    translation.add_argument("--hostname", help="Reported host name (default: the local host name)")
    translation.add_argument(
        "--flush-interval",
        type=timespan_ms,
        default=DEFAULT_FLUSH_INTERVAL_MS,
        help="Flush interval, used to compute counter rates, f.e. 10s (default: 10s)",
    )
    translation.add_argument(
        "--percentile-threshold",
        action="append",
        dest="percentile_thresholds",
        type=percentile,
        help="Percentile threshold for timer summaries (can be repeated, default: 90)",
    )
    translation.add_argument(
        "--counter-totals",
        action="store_true",
        default=False,
        help="Also send the raw count of each counter, as a counter metric",
    )
    translation.add_argument(
        "--use-timer-data",
        action="store_true",
        default=False,
        help="Send the timer statistics precomputed in the snapshot's timer_data instead of summarizing the samples",
    )

    parser.add_argument("--continuous", "-c", action="store_true", help="Re-read and flush the snapshot every interval")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("-v", "--verbose", action="store_true", default=False, dest="verbose")

    logging_options = parser.add_argument_group("logging")
    logging_options.add_argument("--log-file", action="store", type=str, dest="log_file", default=DEFAULT_LOG_FILE)
    logging_options.add_argument(
        "--log-rotate-max-size",
        action="store",
        type=positive_integer,
        dest="log_rotate_max_size",
        default=DEFAULT_LOG_MAX_SIZE,
    )
    logging_options.add_argument(
        "--log-rotate-backup-count",
        action="store",
        type=positive_integer,
        dest="log_rotate_backup_count",
        default=DEFAULT_LOG_BACKUP_COUNT,
    )

    args = parser.parse_args()

    if not args.api_key:
        parser.error("Must provide --api-key")

    return args


def main() -> None:
    args = parse_cmd_args()

    state = init_state()

    global logger
    logger = initial_root_logger_setup(
        logging.DEBUG if args.verbose else logging.INFO,
        args.log_file,
        args.log_rotate_max_size,
        args.log_rotate_backup_count,
    )

    events = EventBus()
    try:
        logger.info("Running ddforwarder", version=__version__, commandline=" ".join(sys.argv[1:]))
        backend = setup_backend(get_process_start_time(), build_backend_config(args), events, logger)
        forwarder = Forwarder(backend, events, state, args.snapshot_file)
        if args.continuous:
            forwarder.run_continuous()
        else:
            forwarder.run_single()
    except KeyboardInterrupt:
        pass
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except Exception:
        logger.exception("Unexpected error occurred")
        sys.exit(1)

    print_status(events)


if __name__ == "__main__":
    main()
