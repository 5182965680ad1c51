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
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple

SEPARATOR = "."


@dataclass(frozen=True)
class TagRule:
    """
    A pattern whose capture groups hold tag values, and the tag names for those groups (in group order).
    """

    pattern: Pattern[str]
    labels: Tuple[str, ...]

    @classmethod
    def compile(cls, pattern: str, labels: Sequence[str]) -> "TagRule":
        # raises re.error on malformed patterns
        compiled = re.compile(pattern)
        if compiled.groups != len(labels):
            raise ValueError(
                f"Tag rule {pattern!r} has {compiled.groups} capture groups but {len(labels)} labels {list(labels)!r}"
            )
        return cls(compiled, tuple(labels))


def _excise(name: str, spans: List[Tuple[int, int]]) -> str:
    """
    Removes the captured spans from the name, each together with one separator: the nearest one after it if there's
    one, else the nearest one before it. Separators already taken by a previous span are skipped over.
    A span nested inside another one (a group within a group) is part of the outer token and takes no separator.
    """
    removed = [False] * len(name)
    covered_until = -1
    # outer spans first when two start at the same offset
    for start, end in sorted(spans, key=lambda span: (span[0], -span[1])):
        if end <= covered_until:
            continue
        covered_until = end
        for index in range(start, end):
            removed[index] = True

        after = end
        while after < len(name) and removed[after]:
            after += 1
        before = start - 1
        while before >= 0 and removed[before]:
            before -= 1

        if after < len(name) and name[after] == SEPARATOR:
            removed[after] = True
        elif before >= 0 and name[before] == SEPARATOR:
            removed[before] = True

    return "".join(char for char, is_removed in zip(name, removed) if not is_removed)


def extract_tags(name: str, rules: Sequence[TagRule]) -> Tuple[str, List[str]]:
    """
    Applies the first matching rule to the metric name.
    Returns the name without the captured tokens, and the "label:value" tags made of them. Tokens are cut by their
    offsets in the name, so a value that appears again elsewhere in the name is only removed where it was captured.
    """
    for rule in rules:
        match = rule.pattern.search(name)
        if match is None:
            continue

        tags = []
        spans = []
        for index, label in enumerate(rule.labels, start=1):
            value: Optional[str] = match.group(index)
            if value is None:
                # optional group that didn't participate in the match
                continue
            tags.append(f"{label}:{value}")
            spans.append(match.span(index))

        return _excise(name, spans), tags

    return name, []


def prefix_name(name: str, prefix: Optional[str]) -> str:
    if prefix:
        return f"{prefix}{SEPARATOR}{name}"
    return name
