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

"""Tree builder for constructing the nested row table of a widget."""

from __future__ import annotations

import logging
from typing import Any

from tabledata.config import EngineConfig
from tabledata.engine.aggregator import RowAggregator
from tabledata.engine.grouping import DataSlice, Group, load_calculation_data, total_group
from tabledata.engine.ordering import order_rows, sort_key
from tabledata.engine.rows import Row
from tabledata.errors import ConfigurationError
from tabledata.schemas import Widget

logger = logging.getLogger(__name__)


class TreeBuilder:
    """Builds a Row tree from calculation data and a widget configuration.

    Starts from the implicit "Total" row and descends one breakdown per
    level: group, aggregate each group, order the siblings, recurse.
    A builder holds no state between calls and never mutates its input.
    """

    def __init__(self, widget: Widget, config: EngineConfig | None = None):
        self.widget = widget
        self.settings = widget.settings
        self.config = config or EngineConfig()

        depth = len(self.settings.breakdowns)
        if depth > self.config.max_depth:
            raise ConfigurationError(
                f"Too many breakdowns: {depth} (maximum {self.config.max_depth})"
            )
        # Fail before any work if the order column is invalid
        sort_key(self.settings)

        self._aggregator = RowAggregator(widget)

    def build(self, calculation_data: Any) -> Row:
        """Build the full tree.

        Args:
            calculation_data: Tally mapping or respondent records

        Returns:
            The root "Total" row, with one level of children per breakdown
        """
        data = load_calculation_data(calculation_data)
        root = self._create_row(total_group(data, self.config.total_label))
        root.children = self._build_level(data, depth=0)

        logger.info(
            "Built table: %d rows over %d breakdown level(s)",
            len(root.iter_rows()),
            len(self.settings.breakdowns),
        )
        return root

    def build_row(self, label: str, tooltip: str | None, row_data: Any) -> Row:
        """Build a single row for an already-grouped slice, without recursion."""
        data = load_calculation_data(row_data)
        return self._create_row(Group(key=label, data=data, tooltip=tooltip))

    def _build_level(self, data: DataSlice, depth: int) -> list[Row]:
        """Build the ordered sibling rows for breakdown ``depth``."""
        if depth >= len(self.settings.breakdowns):
            return []

        breakdown = self.settings.breakdowns[depth]
        concept = self.settings.concept_breakdown_at(depth)
        groups = data.partition(breakdown, self.config.unspecified_label)
        logger.debug(
            "Breakdown %s at depth %d: %d group(s)", breakdown, depth + 1, len(groups)
        )

        rows = []
        for group in groups:
            row = self._create_row(group)
            if concept is not None:
                row.concepts = self._build_concepts(group.data, concept)
            row.children = self._build_level(group.data, depth + 1)
            rows.append(row)

        return order_rows(rows, self.settings)

    def _build_concepts(self, data: DataSlice, concept: str) -> list[Row]:
        groups = data.partition(concept, self.config.unspecified_label)
        return order_rows([self._create_row(g) for g in groups], self.settings)

    def _create_row(self, group: Group) -> Row:
        values, amounts = self._aggregator.aggregate(group.data)
        return Row(
            label=group.key,
            tooltip=group.tooltip,
            values=values,
            amounts=amounts,
            respondents=group.data.respondent_count(),
        )


def build_data(
    calculation_data: Any,
    widget: Widget,
    config: EngineConfig | None = None,
) -> Row:
    """Convenience function to build the full row tree.

    Raises:
        ConfigurationError: If the configuration or data structure is malformed
    """
    return TreeBuilder(widget, config).build(calculation_data)


def build_row(
    breakdown_label: str,
    breakdown_tooltip: str | None,
    row_data: Any,
    widget: Widget,
    config: EngineConfig | None = None,
) -> Row:
    """Convenience function to build a single row with no children.

    Raises:
        ConfigurationError: If the configuration or data structure is malformed
    """
    return TreeBuilder(widget, config).build_row(breakdown_label, breakdown_tooltip, row_data)
