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

"""Breakdown / aggregation engine.

Public API:
    - build_data: calculation data + widget → root Row (full tree)
    - build_row: pre-grouped slice + widget → single Row
"""

from tabledata.engine.aggregator import (
    IndicatorValue,
    RowAggregator,
    TargetStatus,
    aggregate_indicator,
    classify_target,
    round_value,
)
from tabledata.engine.builder import TreeBuilder, build_data, build_row
from tabledata.engine.grouping import Group, load_calculation_data
from tabledata.engine.ordering import order_rows
from tabledata.engine.rows import Row

__all__ = [
    # Models
    "Row",
    "IndicatorValue",
    "TargetStatus",
    "Group",
    # Building blocks
    "RowAggregator",
    "TreeBuilder",
    "aggregate_indicator",
    "classify_target",
    "round_value",
    "load_calculation_data",
    "order_rows",
    # Core functions
    "build_data",
    "build_row",
]
