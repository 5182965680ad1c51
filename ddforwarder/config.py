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
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from ddforwarder.client import DEFAULT_API_HOST
from ddforwarder.exceptions import ConfigurationError
from ddforwarder.summary import validate_thresholds
from ddforwarder.tags import TagRule
from ddforwarder.utils import get_hostname

DEFAULT_FLUSH_INTERVAL_MS = 10 * 1000
DEFAULT_PERCENTILE_THRESHOLDS = (90,)

# config key -> legacy aliases, as used by older StatsD backend configurations.
_ALIASES = {
    "apiKey": ("datadogApiKey",),
    "apiHost": ("datadogApiHost",),
    "prefix": ("datadogPrefix",),
    "tags": ("datadogTags",),
    "metricTagRules": ("datadogMetricTagRules",),
    "flushIntervalMs": ("flushInterval",),
    "percentileThresholds": ("percentThreshold",),
}


@dataclass(frozen=True)
class ForwarderConfig:
    api_key: str
    api_host: str = DEFAULT_API_HOST
    prefix: Optional[str] = None
    tags: Tuple[str, ...] = ()
    tag_rules: Tuple[TagRule, ...] = ()
    flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS
    debug: bool = False
    hostname: Optional[str] = None
    # None means "whatever the host daemon reports in the snapshot, else 90"
    percentile_thresholds: Optional[Tuple[Union[int, float], ...]] = None
    counter_totals: bool = False
    use_timer_data: bool = False
    request_timeout: Optional[float] = None
    curlify_requests: bool = False

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000

    @property
    def reporting_hostname(self) -> str:
        return self.hostname or get_hostname()

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "ForwarderConfig":
        """
        Builds the forwarder configuration out of the host daemon's configuration mapping.
        Keys may be given at the top level or under a "datadog" section, which takes precedence.
        Raises ConfigurationError on anything invalid.
        """
        merged = dict(config)
        section = config.get("datadog")
        if section is not None:
            if not isinstance(section, Mapping):
                raise ConfigurationError(f"'datadog' configuration section must be a mapping, got {section!r}")
            merged.update(section)

        def get(key: str, default: Any = None) -> Any:
            for name in (key,) + _ALIASES.get(key, ()):
                if merged.get(name) is not None:
                    return merged[name]
            return default

        api_key = get("apiKey")
        if not api_key or not isinstance(api_key, str):
            raise ConfigurationError("Missing API key, set 'apiKey' in the configuration")

        api_host = get("apiHost", DEFAULT_API_HOST)
        if not isinstance(api_host, str) or not api_host:
            raise ConfigurationError(f"Invalid API host {api_host!r}")

        prefix = get("prefix")
        if prefix is not None and not isinstance(prefix, str):
            raise ConfigurationError(f"Prefix must be a string, got {prefix!r}")

        hostname = get("hostname")
        if hostname is not None and not isinstance(hostname, str):
            raise ConfigurationError(f"Hostname must be a string, got {hostname!r}")

        request_timeout = get("requestTimeout")
        if request_timeout is not None and (not _is_number(request_timeout) or request_timeout <= 0):
            raise ConfigurationError(f"Request timeout must be a positive number, got {request_timeout!r}")

        return cls(
            api_key=api_key,
            api_host=api_host.rstrip("/"),
            prefix=prefix or None,
            tags=parse_tags(get("tags", ())),
            tag_rules=parse_tag_rules(get("metricTagRules", {})),
            flush_interval_ms=parse_flush_interval(get("flushIntervalMs", DEFAULT_FLUSH_INTERVAL_MS)),
            debug=bool(get("debug", False)),
            hostname=hostname or None,
            percentile_thresholds=parse_percentile_thresholds(get("percentileThresholds")),
            counter_totals=bool(get("counterTotals", False)),
            use_timer_data=bool(get("useTimerData", False)),
            request_timeout=request_timeout,
            curlify_requests=bool(get("curlifyRequests", False)),
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_tags(tags: Any) -> Tuple[str, ...]:
    if isinstance(tags, str) or not isinstance(tags, Iterable):
        raise ConfigurationError(f"Tags must be a list of strings, got {tags!r}")
    tags = tuple(tags)
    for tag in tags:
        if not isinstance(tag, str):
            raise ConfigurationError(f"Tags must be a list of strings, got {tag!r} in {tags!r}")
    return tags


def parse_tag_rules(rules: Any) -> Tuple[TagRule, ...]:
    """
    Accepts a mapping of pattern -> labels or a sequence of (pattern, labels) pairs. Order is kept, since the first
    matching rule wins.
    """
    pairs: Iterable[Any] = rules.items() if isinstance(rules, Mapping) else rules
    compiled = []
    try:
        for pattern, labels in pairs:
            if isinstance(labels, str):
                labels = [labels]
            compiled.append(TagRule.compile(pattern, labels))
    except re.error as e:
        raise ConfigurationError(f"Malformed tag rule pattern {e.pattern!r}: {e}") from e
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid tag rules {rules!r}: {e}") from e
    return tuple(compiled)


def parse_flush_interval(flush_interval_ms: Any) -> int:
    # checked after truncation, a sub-millisecond interval would divide counter rates by zero
    value = int(flush_interval_ms) if _is_number(flush_interval_ms) and math.isfinite(flush_interval_ms) else 0
    if value <= 0:
        raise ConfigurationError(f"Flush interval must be a positive number of milliseconds, got {flush_interval_ms!r}")
    return value


def parse_percentile_thresholds(thresholds: Any) -> Optional[Tuple[Union[int, float], ...]]:
    if thresholds is None:
        return None
    try:
        return validate_thresholds(thresholds)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
