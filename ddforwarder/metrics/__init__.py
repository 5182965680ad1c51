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
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ddforwarder.log import get_logger_adapter
from ddforwarder.summary import validate_thresholds

logger = get_logger_adapter(__name__)

Number = Union[int, float]

GAUGE = "gauge"
COUNTER = "counter"


@dataclass(frozen=True)
class Scalar:
    value: Number


@dataclass(frozen=True)
class Nested:
    values: Mapping[str, "TimerValue"]


TimerValue = Union[Scalar, Nested]


def to_timer_value(raw: Any) -> TimerValue:
    """
    Converts the host's timer statistics (numbers, possibly nested in mappings, e.g. histogram bins) into TimerValue.
    """
    if isinstance(raw, Mapping):
        return Nested({str(k): to_timer_value(v) for k, v in raw.items()})
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise TypeError(f"Unsupported timer data value {raw!r}")
    return Scalar(raw)


def _to_nested(name: str, raw: Any) -> Nested:
    value = to_timer_value(raw)
    if not isinstance(value, Nested):
        raise TypeError(f"Timer data of {name!r} must be a mapping, got {raw!r}")
    return value


def flatten_timer_value(name: str, value: TimerValue) -> Iterator[Tuple[str, Number]]:
    if isinstance(value, Scalar):
        yield name, value.value
    else:
        for key, child in value.values.items():
            yield from flatten_timer_value(f"{name}.{key}", child)


@dataclass
class MetricsSnapshot:
    counters: Dict[str, Number] = field(default_factory=dict)
    gauges: Dict[str, Number] = field(default_factory=dict)
    timers: Dict[str, List[Number]] = field(default_factory=dict)
    counter_rates: Optional[Dict[str, Number]] = None
    statsd_metrics: Optional[Dict[str, Number]] = None
    timer_data: Optional[Dict[str, Nested]] = None
    pct_threshold: Optional[Sequence[Number]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MetricsSnapshot":
        """
        Builds a snapshot from the structure a StatsD-like daemon hands to its backends. Both snake_case and the
        camelCase spellings are accepted for the optional parts.
        """

        def optional(*keys: str) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        timer_data = optional("timer_data", "timerData")
        pct_threshold = optional("pct_threshold", "pctThreshold")
        if pct_threshold is not None:
            try:
                pct_threshold = validate_thresholds(pct_threshold)
            except ValueError as e:
                # the timers fall back to the default thresholds, the rest of the snapshot is still sent
                logger.warning(f"Ignoring the host's percentile thresholds: {e}")
                pct_threshold = None

        return cls(
            counters=dict(data.get("counters") or {}),
            gauges=dict(data.get("gauges") or {}),
            timers={name: list(samples) for name, samples in (data.get("timers") or {}).items()},
            counter_rates=optional("counter_rates", "counterRates"),
            statsd_metrics=optional("statsd_metrics", "statsdMetrics"),
            timer_data=(
                {name: _to_nested(name, stats) for name, stats in timer_data.items()}
                if timer_data is not None
                else None
            ),
            pct_threshold=pct_threshold,
        )


@dataclass
class DataPoint:
    metric: str
    timestamp: int
    value: float
    type: str
    host: str
    tags: List[str]

    def to_series(self) -> Dict[str, Any]:
        # The keys match the schema of the series API one-to-one.
        return {
            "metric": self.metric,
            "points": [[self.timestamp, self.value]],
            "type": self.type,
            "host": self.host,
            "tags": list(self.tags),
        }
