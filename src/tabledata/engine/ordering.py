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

"""Sibling row ordering by the widget's order column and direction."""

from __future__ import annotations

from typing import Any, Callable

from tabledata.engine.rows import Row
from tabledata.errors import ConfigurationError
from tabledata.schemas import OrderDirection, WidgetSettings

LABEL_COLUMN = "label"
RESPONDENTS_COLUMN = "respondents"


def _label_key(row: Row) -> tuple[str, str]:
    return (row.label.casefold(), row.label)


def _respondents_key(row: Row) -> float:
    return row.respondents


def _indicator_key(indicator_id: str) -> Callable[[Row], float]:
    def key(row: Row) -> float:
        value = row.indicator_value(indicator_id)
        return value.raw if value is not None else 0.0

    return key


def sort_key(settings: WidgetSettings) -> Callable[[Row], Any] | None:
    """Key function for the configured order column, or None to keep encounter order.

    Indicator ids take precedence over the built-in ``label`` and
    ``respondents`` columns.

    Raises:
        ConfigurationError: If the order column names nothing sortable
    """
    column = settings.order_column
    if column is None:
        return None
    if any(indicator.id == column for indicator in settings.all_indicators()):
        return _indicator_key(column)
    if column == LABEL_COLUMN:
        return _label_key
    if column == RESPONDENTS_COLUMN:
        return _respondents_key
    raise ConfigurationError(
        f"Invalid order_column '{column}'. "
        f"Valid values: an indicator id, '{LABEL_COLUMN}' or '{RESPONDENTS_COLUMN}'"
    )


def order_rows(rows: list[Row], settings: WidgetSettings) -> list[Row]:
    """Return sibling rows in display order.

    The sort is stable, and stays stable when descending, so rows with
    equal keys keep the order in which their groups were first seen.
    """
    key = sort_key(settings)
    if key is None:
        return list(rows)
    return sorted(rows, key=key, reverse=settings.order_direction is OrderDirection.DESC)
