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
import math
from dataclasses import dataclass
from typing import Any, Iterator, List, Sequence, Tuple, Union

Number = Union[int, float]


@dataclass(frozen=True)
class ThresholdSummary:
    threshold: Number
    mean: float
    upper: Number
    sum: Number


@dataclass(frozen=True)
class SummaryRecord:
    count: int
    lower: Number
    upper: Number
    thresholds: Tuple[ThresholdSummary, ...]

    def metrics(self) -> Iterator[Tuple[str, Number]]:
        """
        Yields (suffix, value) pairs of the timer sub-metrics.
        With a single threshold the trimmed mean is reported as plain "mean", as older StatsD backends did.
        """
        if len(self.thresholds) == 1:
            (only,) = self.thresholds
            suffix = format_threshold(only.threshold)
            yield "mean", only.mean
            yield "upper", self.upper
            yield f"upper_{suffix}", only.upper
            yield f"sum_{suffix}", only.sum
        else:
            for summary in self.thresholds:
                suffix = format_threshold(summary.threshold)
                yield f"mean_{suffix}", summary.mean
                yield f"upper_{suffix}", summary.upper
                yield f"sum_{suffix}", summary.sum
            yield "upper", self.upper

        yield "lower", self.lower
        yield "count", self.count


def format_threshold(threshold: Number) -> str:
    if float(threshold).is_integer():
        return str(int(threshold))
    return str(threshold).replace(".", "_")


def validate_thresholds(thresholds: Any) -> Tuple[Number, ...]:
    """
    Accepts a single threshold or a sequence of them. Raises ValueError unless every one is a number in (0, 100].
    """
    if _is_number(thresholds):
        thresholds = [thresholds]
    if not isinstance(thresholds, Sequence) or isinstance(thresholds, str):
        raise ValueError(f"Percentile thresholds must be a list of numbers, got {thresholds!r}")
    for threshold in thresholds:
        if not _is_number(threshold) or not 0 < threshold <= 100:
            raise ValueError(f"Percentile threshold must be in (0, 100], got {threshold!r}")
    return tuple(thresholds)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def round_half_up(value: float) -> int:
    # Python's round() rounds half to even, the threshold index must round half away from zero.
    # (never negative here, so flooring value + 0.5 does it)
    return int(math.floor(value + 0.5))


def _summarize_threshold(values: List[Number], threshold: Number) -> ThresholdSummary:
    count = len(values)
    if count == 1:
        return ThresholdSummary(threshold, values[0], values[0], values[0])

    threshold_index = round_half_up(((100 - threshold) / 100) * count)
    # very low thresholds over few samples would trim everything
    num_in_threshold = max(count - threshold_index, 1)
    in_threshold = values[:num_in_threshold]
    total = sum(in_threshold)
    return ThresholdSummary(threshold, total / num_in_threshold, in_threshold[-1], total)


def summarize(samples: Sequence[Number], thresholds: Sequence[Number]) -> SummaryRecord:
    """
    Summarizes the timer samples of one flush cycle.

    For every percentile threshold p the top (100 - p)% of the sorted samples are dropped and the mean, max and sum
    of the rest are computed, so outliers don't skew the typical value. lower/upper/count always cover all samples.
    """
    if not samples:
        raise ValueError("Cannot summarize a timer without samples")

    values = sorted(samples)
    return SummaryRecord(
        count=len(values),
        lower=values[0],
        upper=values[-1],
        thresholds=tuple(_summarize_threshold(values, threshold) for threshold in thresholds),
    )
