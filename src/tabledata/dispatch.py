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

"""Strategy selection between the engine and a host-provided fallback builder.

Small tables are cheaper to build with the host's own implementation; past a
row threshold the engine is used. An engine error also falls back so the
host can still show a table. The engine itself behaves the same whichever
way it was selected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from tabledata import service
from tabledata.config import DEFAULT_ROW_THRESHOLD, EngineConfig
from tabledata.engine.grouping import GROUPS_KEY, RESPONDENTS_KEY

logger = logging.getLogger(__name__)

FallbackBuildData = Callable[[Any, Mapping[str, Any]], Any]
FallbackBuildRow = Callable[[str, Any, Any, Mapping[str, Any]], Any]


def count_rows(calculation_data: Any) -> int:
    """Estimate the volume of calculation data.

    Respondent records count one each. In tally form every distribution
    entry counts one, and nested groups count themselves plus their contents.
    """
    if calculation_data is None:
        return 0
    if isinstance(calculation_data, (list, tuple)):
        return len(calculation_data)
    if not isinstance(calculation_data, Mapping):
        return 0
    if RESPONDENTS_KEY in calculation_data:
        return count_rows(calculation_data[RESPONDENTS_KEY])

    total = 0
    for key, value in calculation_data.items():
        if key == GROUPS_KEY and isinstance(value, Mapping):
            for groups in value.values():
                if isinstance(groups, Mapping):
                    total += len(groups)
                    total += sum(count_rows(sub) for sub in groups.values())
        elif isinstance(value, Mapping) and not str(key).startswith("_"):
            total += len(value)
    return total


@dataclass
class TableBuilderStrategy:
    """Chooses the engine or a fallback builder for each call."""

    fallback_build_data: FallbackBuildData | None = None
    fallback_build_row: FallbackBuildRow | None = None
    row_threshold: int = DEFAULT_ROW_THRESHOLD
    config: EngineConfig | None = None

    @classmethod
    def from_config(cls, config: EngineConfig, **fallbacks: Any) -> "TableBuilderStrategy":
        return cls(row_threshold=config.row_threshold, config=config, **fallbacks)

    def use_engine(self, calculation_data: Any, has_fallback: bool = True) -> bool:
        """True when the engine should handle this data volume."""
        if not has_fallback:
            return True
        return count_rows(calculation_data) > self.row_threshold

    def build_data(self, calculation_data: Any, widget: Mapping[str, Any]) -> Any:
        """Build the full table with the selected implementation."""
        fallback = self.fallback_build_data
        if not self.use_engine(calculation_data, fallback is not None):
            logger.debug("Below row threshold %d; using fallback builder", self.row_threshold)
            return fallback(calculation_data, widget)

        result = service.build_data(
            {"calculation_data": calculation_data, "widget": widget}, self.config
        )
        if service.is_error(result) and fallback is not None:
            logger.warning("Engine build failed (%s); using fallback builder", result["error"])
            return fallback(calculation_data, widget)
        return result

    def build_row(
        self,
        breakdown_label: str,
        breakdown_tooltip: str | None,
        row_data: Any,
        widget: Mapping[str, Any],
        calculation_data: Any = None,
    ) -> Any:
        """Build one row with the selected implementation.

        The decision follows the volume of the whole table when
        ``calculation_data`` is given, so every row of a table is built the
        same way; otherwise it follows ``row_data``.
        """
        fallback = self.fallback_build_row
        volume_source = calculation_data if calculation_data is not None else row_data
        if not self.use_engine(volume_source, fallback is not None):
            return fallback(breakdown_label, breakdown_tooltip, row_data, widget)

        result = service.build_row(
            {
                "breakdown_label": breakdown_label,
                "breakdown_tooltip": breakdown_tooltip,
                "row_data": row_data,
                "widget": widget,
            },
            self.config,
        )
        if service.is_error(result) and fallback is not None:
            logger.warning("Engine row build failed (%s); using fallback builder", result["error"])
            return fallback(breakdown_label, breakdown_tooltip, row_data, widget)
        return result
