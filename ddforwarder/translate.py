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
from typing import Iterator, List, Optional, Sequence, Union

from ddforwarder.config import DEFAULT_PERCENTILE_THRESHOLDS, ForwarderConfig
from ddforwarder.metrics import COUNTER, GAUGE, DataPoint, MetricsSnapshot, flatten_timer_value
from ddforwarder.summary import summarize
from ddforwarder.tags import extract_tags, prefix_name

Number = Union[int, float]


class SnapshotTranslator:
    """
    Translates a metrics snapshot into the data points of the series API.
    Stateless apart from the configuration; one translator serves all flush cycles.
    """

    def __init__(self, config: ForwarderConfig):
        self._config = config
        self._host = config.reporting_hostname

    def _point(
        self, name: str, timestamp: int, value: Number, metric_type: str = GAUGE, extract: bool = True
    ) -> DataPoint:
        tags = list(self._config.tags)
        if extract:
            # tags are taken from the name before the prefix is added
            name, metric_tags = extract_tags(name, self._config.tag_rules)
            tags.extend(metric_tags)
        return DataPoint(
            metric=prefix_name(name, self._config.prefix),
            timestamp=timestamp,
            value=value,
            type=metric_type,
            host=self._host,
            tags=tags,
        )

    def _thresholds(self, snapshot: MetricsSnapshot) -> Sequence[Number]:
        return self._config.percentile_thresholds or snapshot.pct_threshold or DEFAULT_PERCENTILE_THRESHOLDS

    def _counter_points(self, snapshot: MetricsSnapshot, timestamp: int) -> Iterator[DataPoint]:
        rates = snapshot.counter_rates or {}
        for name, value in snapshot.counters.items():
            rate: Optional[Number] = rates.get(name)
            if rate is None:
                rate = value / self._config.flush_interval_seconds
            yield self._point(name, timestamp, rate)
            if self._config.counter_totals:
                yield self._point(name, timestamp, value, COUNTER)

    def _gauge_points(self, snapshot: MetricsSnapshot, timestamp: int) -> Iterator[DataPoint]:
        for name, value in snapshot.gauges.items():
            yield self._point(name, timestamp, value)

    def _timer_points(self, snapshot: MetricsSnapshot, timestamp: int) -> Iterator[DataPoint]:
        if self._config.use_timer_data and snapshot.timer_data is not None:
            yield from self._timer_data_points(snapshot, timestamp)
            return

        thresholds = self._thresholds(snapshot)
        for name, samples in snapshot.timers.items():
            if not samples:
                # no activity isn't reported as zero
                continue
            for suffix, value in summarize(samples, thresholds).metrics():
                yield self._point(f"{name}.{suffix}", timestamp, value)

    def _timer_data_points(self, snapshot: MetricsSnapshot, timestamp: int) -> Iterator[DataPoint]:
        assert snapshot.timer_data is not None
        for name, stats in snapshot.timer_data.items():
            flattened = dict(flatten_timer_value(name, stats))
            if not flattened.get(f"{name}.count"):
                continue
            for metric_name, value in flattened.items():
                yield self._point(metric_name, timestamp, value)

    def _internal_points(self, snapshot: MetricsSnapshot, timestamp: int) -> Iterator[DataPoint]:
        for name, value in (snapshot.statsd_metrics or {}).items():
            yield self._point(name, timestamp, value, extract=False)

    def translate(self, snapshot: MetricsSnapshot, timestamp: int) -> List[DataPoint]:
        return [
            *self._counter_points(snapshot, timestamp),
            *self._gauge_points(snapshot, timestamp),
            *self._timer_points(snapshot, timestamp),
            *self._internal_points(snapshot, timestamp),
        ]
