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
from typing import Any, Dict, List

import pytest

from ddforwarder.config import ForwarderConfig
from ddforwarder.metrics import COUNTER, GAUGE, DataPoint, MetricsSnapshot
from ddforwarder.translate import SnapshotTranslator

NOW = 1700000000


def translate(config_dict: Dict[str, Any], snapshot: Dict[str, Any]) -> List[DataPoint]:
    translator = SnapshotTranslator(ForwarderConfig.from_dict(config_dict))
    return translator.translate(MetricsSnapshot.from_dict(snapshot), NOW)


def by_metric(points: List[DataPoint]) -> Dict[str, DataPoint]:
    return {point.metric: point for point in points}


def test_counter_and_gauge(config_dict: Dict[str, Any]):
    points = translate(config_dict, {"counters": {"a": 10}, "gauges": {"b": 5}, "timers": {}})
    assert points == [
        DataPoint(metric="a", timestamp=NOW, value=1.0, type=GAUGE, host="test-host", tags=["env:test"]),
        DataPoint(metric="b", timestamp=NOW, value=5, type=GAUGE, host="test-host", tags=["env:test"]),
    ]


def test_counter_rate_per_second(config_dict: Dict[str, Any]):
    config_dict["flushIntervalMs"] = 60000
    (point,) = translate(config_dict, {"counters": {"requests": 120}})
    assert point.value == 2.0


def test_precomputed_counter_rate(config_dict: Dict[str, Any]):
    (point,) = translate(config_dict, {"counters": {"requests": 120}, "counter_rates": {"requests": 3.5}})
    assert point.value == 3.5


def test_counter_totals(config_dict: Dict[str, Any]):
    config_dict["counterTotals"] = True
    points = translate(config_dict, {"counters": {"requests": 50}})
    assert [(point.metric, point.type, point.value) for point in points] == [
        ("requests", GAUGE, 5.0),
        ("requests", COUNTER, 50),
    ]


def test_timer_without_samples_skipped(config_dict: Dict[str, Any]):
    assert translate(config_dict, {"timers": {"idle": []}}) == []


def test_timer_summary(config_dict: Dict[str, Any]):
    points = by_metric(translate(config_dict, {"timers": {"db.query": [10, 9, 8, 7, 6, 5, 4, 3, 2, 1]}}))
    assert {name: point.value for name, point in points.items()} == {
        "db.query.mean": 5,
        "db.query.upper": 10,
        "db.query.upper_90": 9,
        "db.query.sum_90": 45,
        "db.query.lower": 1,
        "db.query.count": 10,
    }
    assert all(point.type == GAUGE for point in points.values())


def test_configured_thresholds(config_dict: Dict[str, Any]):
    config_dict["percentileThresholds"] = [50, 99]
    points = by_metric(translate(config_dict, {"timers": {"t": [1, 2, 3, 4]}}))
    assert points["t.upper_50"].value == 2
    assert points["t.mean_50"].value == 1.5
    assert points["t.upper_99"].value == 4
    assert "t.mean" not in points


def test_snapshot_thresholds_used_when_not_configured(config_dict: Dict[str, Any]):
    points = by_metric(translate(config_dict, {"timers": {"t": [1, 2, 3, 4]}, "pctThreshold": 50}))
    assert points["t.upper_50"].value == 2


@pytest.mark.parametrize(
    "pct_threshold",
    [
        pytest.param("90", id="string"),
        pytest.param(0, id="zero"),
        pytest.param([90, 150], id="above-100"),
    ],
)
def test_invalid_snapshot_thresholds_fall_back_to_default(config_dict: Dict[str, Any], pct_threshold: Any):
    snapshot = {"counters": {"a": 10}, "gauges": {"b": 5}, "timers": {"t": [1, 2, 3, 4]}, "pctThreshold": pct_threshold}
    points = by_metric(translate(config_dict, snapshot))
    assert points["a"].value == 1.0
    assert points["b"].value == 5
    assert points["t.upper_90"].value == 4
    assert points["t.count"].value == 4


def test_invalid_snapshot_thresholds_dropped():
    assert MetricsSnapshot.from_dict({"pct_threshold": 0}).pct_threshold is None
    assert MetricsSnapshot.from_dict({"pct_threshold": 95}).pct_threshold == (95,)


def test_prefix_and_tags(config_dict: Dict[str, Any]):
    config_dict["prefix"] = "statsd"
    (point,) = translate(config_dict, {"gauges": {"interface.eth0.if_octets.octets.rx": 1024}})
    assert point.metric == "statsd.interface.if_octets.octets.rx"
    assert point.tags == ["env:test", "interface_name:eth0"]


def test_prefix_does_not_affect_tags(config_dict: Dict[str, Any]):
    snapshot = {"gauges": {"interface.eth0.if_octets.octets.rx": 1024}}
    (without_prefix,) = translate(config_dict, snapshot)
    config_dict["prefix"] = "statsd"
    (with_prefix,) = translate(config_dict, snapshot)
    assert without_prefix.tags == with_prefix.tags
    assert with_prefix.metric == f"statsd.{without_prefix.metric}"


def test_timer_sub_metrics_tagged(config_dict: Dict[str, Any]):
    config_dict["metricTagRules"] = {r"^api\.(\w+)\.latency": ["endpoint"]}
    points = translate(config_dict, {"timers": {"api.users.latency": [3]}})
    assert {point.metric for point in points} == {
        "api.latency.mean",
        "api.latency.upper",
        "api.latency.upper_90",
        "api.latency.sum_90",
        "api.latency.lower",
        "api.latency.count",
    }
    assert all(point.tags == ["env:test", "endpoint:users"] for point in points)


def test_internal_metrics_not_tag_extracted(config_dict: Dict[str, Any]):
    config_dict["prefix"] = "statsd"
    snapshot = {"statsd_metrics": {"interface.eth0.if_octets.octets.rx": 1, "processing_time": 3}}
    points = translate(config_dict, snapshot)
    assert [(point.metric, point.value, point.tags) for point in points] == [
        ("statsd.interface.eth0.if_octets.octets.rx", 1, ["env:test"]),
        ("statsd.processing_time", 3, ["env:test"]),
    ]


def test_categories_order(config_dict: Dict[str, Any]):
    snapshot = {
        "statsd_metrics": {"processing_time": 3},
        "timers": {"t": [1]},
        "gauges": {"g": 1},
        "counters": {"c": 1},
    }
    metrics = [point.metric for point in translate(config_dict, snapshot)]
    assert metrics[:2] == ["c", "g"]
    assert metrics[-1] == "processing_time"
    assert all(metric.startswith("t.") for metric in metrics[2:-1])


def test_timer_data(config_dict: Dict[str, Any]):
    config_dict["useTimerData"] = True
    snapshot = {
        "timers": {"t": [1, 2, 3]},
        "timer_data": {
            "t": {"count": 3, "mean": 2, "histogram": {"bin_10": 3, "bin_inf": 0}},
            "idle": {"count": 0, "mean": 0},
        },
    }
    points = translate(config_dict, snapshot)
    assert {point.metric: point.value for point in points} == {
        "t.count": 3,
        "t.mean": 2,
        "t.histogram.bin_10": 3,
        "t.histogram.bin_inf": 0,
    }


def test_timer_data_ignored_unless_enabled(config_dict: Dict[str, Any]):
    snapshot = {"timers": {"t": [1, 2, 3]}, "timer_data": {"t": {"count": 3, "histogram": {"bin_10": 3}}}}
    assert "t.histogram.bin_10" not in by_metric(translate(config_dict, snapshot))


def test_timer_data_must_be_mapping():
    with pytest.raises(TypeError):
        MetricsSnapshot.from_dict({"timer_data": {"t": 5}})


def test_default_host(config_dict: Dict[str, Any]):
    del config_dict["hostname"]
    (point,) = translate(config_dict, {"gauges": {"g": 1}})
    assert point.host == socket.gethostname()


def test_series_format(config_dict: Dict[str, Any]):
    (point,) = translate(config_dict, {"gauges": {"g": 1.5}})
    assert point.to_series() == {
        "metric": "g",
        "points": [[NOW, 1.5]],
        "type": "gauge",
        "host": "test-host",
        "tags": ["env:test"],
    }
