# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Grouping engine - partitions calculation data by breakdown value.

Calculation data arrives in one of two shapes:

* tally form: a mapping of question name to observations (a scalar, a list of
  answers, or an ``{item: count}`` distribution), with the next level(s)
  pre-grouped under ``_groups[breakdown][value]``;
* respondent form: a list of per-respondent records (or
  ``{"_respondents": [...]}``) grouped by the record's breakdown field.

Both are wrapped in a ``DataSlice`` so the aggregator and tree builder never
care which shape they are reading. Slices only read their input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

from tabledata.config import DEFAULT_UNSPECIFIED_LABEL
from tabledata.errors import ConfigurationError

RESERVED_PREFIX = "_"
COUNT_KEY = "_count"
GROUPS_KEY = "_groups"
TOOLTIPS_KEY = "_tooltips"
RESPONDENTS_KEY = "_respondents"
WEIGHT_KEY = "_weight"

# Tolerance when subtracting group weights from their parent's
EPSILON = 1e-9

Observation = tuple[Any, float]


def to_number(value: Any) -> float | None:
    """Convert an answer to a float, or None if it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_key(value: Any) -> str | None:
    """String form of a breakdown value or response item; None when missing."""
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        parts = [k for k in (normalize_key(v) for v in value) if k is not None]
        return ", ".join(parts) if parts else None
    text = str(value).strip()
    return text or None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and not value:
        return True
    return False


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


def _answer(value: Any) -> Any:
    # Multi-select answers become tuples so they stay hashable and immutable.
    if isinstance(value, list):
        return tuple(value)
    return value


class DataSlice(Protocol):
    """Read-only view over the calculation data of one group."""

    def observations(self, question: str) -> list[Observation]:
        """(value, weight) pairs recorded for a question."""
        ...

    def respondent_count(self) -> float:
        """Number (or total weight) of respondents in the slice."""
        ...

    def partition(self, breakdown: str, unspecified: str) -> list["Group"]:
        """Split the slice by a breakdown, in first-encounter order."""
        ...


@dataclass(frozen=True)
class Group:
    """One breakdown value and the data belonging to it."""

    key: str
    data: DataSlice
    tooltip: str | None = None


class _GroupCollector:
    """Collects slices per key, merging identical keys in encounter order."""

    def __init__(self) -> None:
        self._parts: dict[str, list[DataSlice]] = {}
        self._tooltips: dict[str, str] = {}

    def add(self, key: str, data: DataSlice, tooltip: str | None) -> None:
        self._parts.setdefault(key, []).append(data)
        if tooltip and key not in self._tooltips:
            self._tooltips[key] = tooltip

    def groups(self) -> list[Group]:
        result = []
        for key, parts in self._parts.items():
            data = parts[0] if len(parts) == 1 else CompositeSlice(tuple(parts))
            result.append(Group(key=key, data=data, tooltip=self._tooltips.get(key)))
        return result


def _tooltip_lookup(tooltips: Any, breakdown: str, raw_key: Any, key: str) -> str | None:
    if not isinstance(tooltips, Mapping):
        return None
    per_breakdown = tooltips.get(breakdown)
    if not isinstance(per_breakdown, Mapping):
        return None
    text = per_breakdown.get(raw_key) if isinstance(raw_key, str) else None
    if text is None:
        text = per_breakdown.get(key)
    return None if text is None else str(text)


class TallySlice:
    """Slice over a pre-aggregated, nested mapping."""

    def __init__(self, node: Mapping[str, Any]):
        self.node = node

    def observations(self, question: str) -> list[Observation]:
        if str(question).startswith(RESERVED_PREFIX):
            return []
        raw = self.node.get(question)
        if _is_missing(raw):
            return []
        if isinstance(raw, Mapping):
            result = []
            for item, count in raw.items():
                weight = to_number(count)
                if weight is None or _is_missing(item):
                    continue
                result.append((item, weight))
            return result
        if isinstance(raw, (list, tuple)):
            return [(_answer(v), 1.0) for v in raw if not _is_missing(v)]
        return [(raw, 1.0)]

    def respondent_count(self) -> float:
        count = to_number(self.node.get(COUNT_KEY))
        if count is not None:
            return count
        totals = [
            sum(weight for _, weight in self.observations(question))
            for question in self.node
            if not str(question).startswith(RESERVED_PREFIX)
        ]
        return max(totals, default=0.0)

    def partition(self, breakdown: str, unspecified: str = DEFAULT_UNSPECIFIED_LABEL) -> list[Group]:
        """Split by the pre-grouped ``_groups[breakdown]`` entry.

        Whatever the groups do not account for (no entry for the breakdown,
        or group totals short of this node's) goes to ``unspecified``.
        """
        all_groups = self.node.get(GROUPS_KEY)
        if all_groups is None:
            all_groups = {}
        if not isinstance(all_groups, Mapping):
            raise ConfigurationError(
                f"'{GROUPS_KEY}' must map breakdown ids to groups, "
                f"got {type(all_groups).__name__}"
            )
        groups = all_groups.get(breakdown)
        if groups is None:
            groups = {}
        if not isinstance(groups, Mapping):
            raise ConfigurationError(
                f"Groups for breakdown '{breakdown}' must be an object, "
                f"got {type(groups).__name__}"
            )

        collector = _GroupCollector()
        tooltips = self.node.get(TOOLTIPS_KEY)
        for raw_key, sub_node in groups.items():
            key = normalize_key(raw_key) or unspecified
            collector.add(
                key,
                load_calculation_data(sub_node),
                _tooltip_lookup(tooltips, breakdown, raw_key, key),
            )

        remainder = self._remainder(collector.groups())
        if remainder is not None:
            collector.add(unspecified, remainder, None)
        return collector.groups()

    def _remainder(self, groups: list[Group]) -> "RemainderSlice | None":
        """Observations and respondents of this node not covered by ``groups``."""
        leftover: dict[str, list[Observation]] = {}
        for question in self.node:
            if str(question).startswith(RESERVED_PREFIX):
                continue
            # A scalar is a pre-computed aggregate; it cannot be split by value
            if groups and not isinstance(self.node[question], (Mapping, list, tuple)):
                continue
            weights: dict[Any, float] = {}
            values: dict[Any, Any] = {}
            for value, weight in self.observations(question):
                ref = _hashable(value)
                weights[ref] = weights.get(ref, 0.0) + weight
                values.setdefault(ref, value)
            for group in groups:
                for value, weight in group.data.observations(question):
                    ref = _hashable(value)
                    if ref in weights:
                        weights[ref] -= weight
            rest = [(values[ref], weight) for ref, weight in weights.items() if weight > EPSILON]
            if rest:
                leftover[question] = rest

        count = self.respondent_count() - sum(g.data.respondent_count() for g in groups)
        if count <= EPSILON and not leftover:
            return None
        return RemainderSlice(leftover, max(count, 0.0))


class RemainderSlice:
    """Tally observations that no pre-grouped entry accounts for.

    It has no groups of its own, so every further breakdown puts it whole
    into the unspecified group.
    """

    def __init__(self, observations: dict[str, list[Observation]], count: float):
        self._observations = observations
        if count <= EPSILON:
            count = max(
                (sum(weight for _, weight in obs) for obs in observations.values()),
                default=0.0,
            )
        self.count = count

    def observations(self, question: str) -> list[Observation]:
        return list(self._observations.get(question, ()))

    def respondent_count(self) -> float:
        return self.count

    def partition(self, breakdown: str, unspecified: str = DEFAULT_UNSPECIFIED_LABEL) -> list[Group]:
        return [Group(key=unspecified, data=self)]


class RecordSlice:
    """Slice over per-respondent records."""

    def __init__(
        self,
        records: Iterable[Mapping[str, Any]],
        tooltips: Mapping[str, Any] | None = None,
    ):
        self.records = tuple(records)
        self.tooltips = tooltips or {}

    @staticmethod
    def _weight(record: Mapping[str, Any]) -> float:
        weight = to_number(record.get(WEIGHT_KEY))
        return 1.0 if weight is None else weight

    def observations(self, question: str) -> list[Observation]:
        result: list[Observation] = []
        for record in self.records:
            value = record.get(question)
            if _is_missing(value):
                continue
            result.append((_answer(value), self._weight(record)))
        return result

    def respondent_count(self) -> float:
        return float(sum(self._weight(record) for record in self.records))

    def partition(self, breakdown: str, unspecified: str = DEFAULT_UNSPECIFIED_LABEL) -> list[Group]:
        buckets: dict[str, list[Mapping[str, Any]]] = {}
        raw_keys: dict[str, Any] = {}
        for record in self.records:
            raw_key = record.get(breakdown)
            key = normalize_key(raw_key) or unspecified
            buckets.setdefault(key, []).append(record)
            raw_keys.setdefault(key, raw_key)

        return [
            Group(
                key=key,
                data=RecordSlice(records, self.tooltips),
                tooltip=_tooltip_lookup(self.tooltips, breakdown, raw_keys[key], key),
            )
            for key, records in buckets.items()
        ]


class CompositeSlice:
    """Union of several slices that share one breakdown key."""

    def __init__(self, parts: tuple[DataSlice, ...]):
        self.parts = parts

    def observations(self, question: str) -> list[Observation]:
        result: list[Observation] = []
        for part in self.parts:
            result.extend(part.observations(question))
        return result

    def respondent_count(self) -> float:
        return float(sum(part.respondent_count() for part in self.parts))

    def partition(self, breakdown: str, unspecified: str = DEFAULT_UNSPECIFIED_LABEL) -> list[Group]:
        collector = _GroupCollector()
        for part in self.parts:
            for group in part.partition(breakdown, unspecified):
                collector.add(group.key, group.data, group.tooltip)
        return collector.groups()


def load_calculation_data(data: Any) -> DataSlice:
    """Wrap raw calculation data in the matching slice type.

    Raises:
        ConfigurationError: If the data is not a mapping, a list of records, or null
    """
    if data is None:
        return TallySlice({})
    if isinstance(data, (list, tuple)):
        return RecordSlice(_check_records(data))
    if isinstance(data, Mapping):
        if RESPONDENTS_KEY in data:
            tooltips = data.get(TOOLTIPS_KEY)
            return RecordSlice(
                _check_records(data[RESPONDENTS_KEY] or []),
                tooltips if isinstance(tooltips, Mapping) else None,
            )
        return TallySlice(data)
    raise ConfigurationError(
        f"Calculation data must be an object or a list of records, got {type(data).__name__}"
    )


def _check_records(records: Any) -> list[Mapping[str, Any]]:
    if not isinstance(records, (list, tuple)):
        raise ConfigurationError(
            f"'{RESPONDENTS_KEY}' must be a list, got {type(records).__name__}"
        )
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise ConfigurationError(
                f"Respondent record {index} must be an object, got {type(record).__name__}"
            )
    return list(records)


def total_group(data: DataSlice, label: str) -> Group:
    """The implicit depth-0 group holding the entire dataset."""
    return Group(key=label, data=data)
