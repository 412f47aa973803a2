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

"""Row model - one node of the output table tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tabledata.engine.aggregator import IndicatorValue


@dataclass
class Row:
    """A table row: label, optional tooltip, indicator values and sub-rows.

    ``concepts`` holds concept-breakdown rows for this group. They are
    siblings of one another, never recursed into, and do not count towards
    the tree depth.
    """

    label: str
    tooltip: str | None = None
    values: dict[str, IndicatorValue] = field(default_factory=dict)
    amounts: dict[str, IndicatorValue] = field(default_factory=dict)
    respondents: float = 0.0
    children: list["Row"] = field(default_factory=list)
    concepts: list["Row"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        """Check if this is a leaf row (no children)."""
        return len(self.children) == 0

    @property
    def height(self) -> int:
        """Number of row levels from this row down to its deepest leaf."""
        if not self.children:
            return 1
        return 1 + max(child.height for child in self.children)

    def indicator_value(self, indicator_id: str) -> IndicatorValue | None:
        """Look up a computed value among both indicators and amounts."""
        return self.values.get(indicator_id) or self.amounts.get(indicator_id)

    def iter_rows(self) -> list["Row"]:
        """All rows of the subtree, depth-first, concept rows excluded."""
        rows = []

        def _collect(row: Row) -> None:
            rows.append(row)
            for child in row.children:
                _collect(child)

        _collect(self)
        return rows

    def to_dict(self, include_children: bool = True) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        respondents: int | float = self.respondents
        if float(respondents).is_integer():
            respondents = int(respondents)

        result: dict[str, Any] = {
            "label": self.label,
            "tooltip": self.tooltip,
            "values": {k: v.to_dict() for k, v in self.values.items()},
            "amounts": {k: v.to_dict() for k, v in self.amounts.items()},
            "respondents": respondents,
            "children": [],
        }

        if include_children:
            result["children"] = [child.to_dict() for child in self.children]

        if self.concepts:
            result["concepts"] = [concept.to_dict(include_children=False) for concept in self.concepts]

        return result
