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
from typing import List, Tuple, Union

import configargparse
import humanfriendly

TagRuleArg = Tuple[str, List[str]]


def positive_integer(value_str: str) -> int:
    value = int(value_str)
    if value <= 0:
        raise configargparse.ArgumentTypeError("invalid positive integer value: {!r}".format(value))
    return value


def positive_float(value_str: str) -> float:
    try:
        value = float(value_str)
    except ValueError:
        raise configargparse.ArgumentTypeError(f"invalid number: {value_str!r}")
    if not 0 < value < float("inf"):
        raise configargparse.ArgumentTypeError(f"invalid positive number: {value_str!r}")
    return value


def percentile(value_str: str) -> Union[int, float]:
    try:
        value = float(value_str)
    except ValueError:
        raise configargparse.ArgumentTypeError(f"invalid percentile value: {value_str!r}")
    if not 0 < value <= 100:
        raise configargparse.ArgumentTypeError(f"invalid percentile value {value_str!r} (must be in (0, 100])")
    return int(value) if value.is_integer() else value


def timespan_ms(value_str: str) -> int:
    """
    Parses a timespan such as "10s", "1m" or "1500ms" into milliseconds. A bare number is taken as seconds.
    """
    try:
        value = humanfriendly.parse_timespan(value_str)
    except humanfriendly.InvalidTimespan as e:
        raise configargparse.ArgumentTypeError(str(e))
    milliseconds = int(round(value * 1000))
    if milliseconds <= 0:
        raise configargparse.ArgumentTypeError(f"invalid timespan {value_str!r} (must be positive)")
    return milliseconds


def tag_rule(value_str: str) -> TagRuleArg:
    try:
        pattern, labels = value_str.rsplit("=", 1)
    except ValueError:
        raise configargparse.ArgumentTypeError(
            f"invalid tag rule {value_str!r}, expected PATTERN=label1,label2 f.e. ^app\\.(\\w+)\\.=app_name"
        )
    return pattern, [label.strip() for label in labels.split(",") if label.strip()]
