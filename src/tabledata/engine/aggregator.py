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

"""Indicator aggregation - computes one indicator's value for a group."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any

from tabledata.engine.grouping import DataSlice, Observation, normalize_key, to_number
from tabledata.schemas import CampaignTarget, Indicator, IndicatorType, Measure, Widget

logger = logging.getLogger(__name__)


class TargetStatus(str, Enum):
    """Position of a value relative to its campaign target."""

    ABOVE = "above"
    BELOW = "below"
    ON_TARGET = "on-target"


DEFAULT_MEASURES: dict[IndicatorType, Measure] = {
    IndicatorType.NUMERIC: Measure.AVERAGE,
    IndicatorType.CHOICE: Measure.PERCENTAGE,
    IndicatorType.RESPONDENTS: Measure.COUNT,
}
DEFAULT_AMOUNT_MEASURE = Measure.SUM


@dataclass(frozen=True)
class IndicatorValue:
    """Computed value of one indicator for one row.

    ``raw`` keeps full precision for ordering and target classification;
    ``value`` is the rounded display value.
    """

    indicator_id: str
    title: str
    raw: float
    value: int | float
    status: TargetStatus | None = None
    target: CampaignTarget | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"value": self.value, "title": self.title}
        if self.status is not None and self.target is not None:
            result["status"] = self.status.value
            result["target"] = self.target.target
            result["margin"] = self.target.margin
            result["target_name"] = self.target.name
        return result


def resolve_measure(indicator: Indicator, amount: bool = False) -> Measure:
    """Measure to compute, falling back to the indicator type's default."""
    if indicator.measure is not None:
        return indicator.measure
    if amount:
        return DEFAULT_AMOUNT_MEASURE
    return DEFAULT_MEASURES[indicator.type]


def round_value(value: float, digits: int) -> int | float:
    """Round half away from zero to ``digits`` places.

    Works on the decimal text of the float so 2.675 rounds to 2.68.
    With ``digits == 0`` the result is an int. ``value`` must be finite.
    """
    with localcontext() as ctx:
        # Room for every integer digit plus the requested decimals
        ctx.prec = max(28, len(str(int(abs(value)))) + digits + 2)
        quantum = Decimal(1).scaleb(-digits)
        rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    if digits == 0:
        return int(rounded)
    result = float(rounded)
    # Avoid rendering -0.0
    return 0.0 if result == 0 else result


def classify_target(value: float, target: CampaignTarget) -> TargetStatus:
    """Classify a value against a target and its margin.

    An exact hit is always on target. Otherwise a delta of at least
    ``margin`` either way leaves the band; ``revert_calcul`` swaps the
    above/below labels.
    """
    delta = value - target.target
    if delta == 0:
        return TargetStatus.ON_TARGET
    if delta >= target.margin:
        status = TargetStatus.ABOVE
    elif delta <= -target.margin:
        status = TargetStatus.BELOW
    else:
        return TargetStatus.ON_TARGET

    if target.revert_calcul:
        return TargetStatus.BELOW if status is TargetStatus.ABOVE else TargetStatus.ABOVE
    return status


def _matches(value: Any, items: frozenset[str]) -> bool:
    if isinstance(value, tuple):
        return any(normalize_key(v) in items for v in value)
    return normalize_key(value) in items


def _numeric_totals(observations: list[Observation]) -> tuple[float, float]:
    total = 0.0
    weight_sum = 0.0
    for value, weight in observations:
        number = to_number(value)
        if number is None:
            continue
        total += number * weight
        weight_sum += weight
    return total, weight_sum


def compute_measure(
    indicator: Indicator,
    measure: Measure,
    data: DataSlice,
) -> float:
    """Compute the unrounded value of a measure over a slice.

    Missing data yields 0 rather than an error.
    """
    if indicator.type is IndicatorType.RESPONDENTS or indicator.question is None:
        return float(data.respondent_count())

    observations = data.observations(indicator.question)

    if measure is Measure.SUM:
        total, _ = _numeric_totals(observations)
        return total

    if measure is Measure.AVERAGE:
        total, count = _numeric_totals(observations)
        if count == 0:
            return 0.0
        return total / count

    items = frozenset(indicator.response_items)
    matched = sum(weight for value, weight in observations if _matches(value, items))

    if measure is Measure.PERCENTAGE:
        total_weight = sum(weight for _, weight in observations)
        if total_weight == 0:
            return 0.0
        return matched / total_weight * 100

    # Measure.COUNT
    if items:
        return float(matched)
    return float(sum(weight for _, weight in observations))


def aggregate_indicator(
    indicator: Indicator,
    data: DataSlice,
    target: CampaignTarget | None = None,
    amount: bool = False,
) -> IndicatorValue:
    """Compute one indicator's display value (and target status) for a slice."""
    raw = compute_measure(indicator, resolve_measure(indicator, amount), data)
    if not math.isfinite(raw):
        logger.warning("Indicator %s overflowed to %s; reporting 0", indicator.id, raw)
        raw = 0.0
    status = classify_target(raw, target) if target is not None else None
    return IndicatorValue(
        indicator_id=indicator.id,
        title=indicator.title,
        raw=raw,
        value=round_value(raw, indicator.digits),
        status=status,
        target=target,
    )


class RowAggregator:
    """Computes every configured indicator of a widget for one slice.

    Campaign targets are resolved once per build; an indicator whose target
    cannot be resolved is computed without a status.
    """

    def __init__(self, widget: Widget):
        self.settings = widget.settings
        self._targets: dict[str, CampaignTarget | None] = {}
        for indicator in self.settings.all_indicators():
            target = widget.target_for(indicator)
            if indicator.campaign_target_id is not None and target is None:
                logger.warning(
                    "Campaign target %s for indicator %s not found; skipping classification",
                    indicator.campaign_target_id,
                    indicator.id,
                )
            self._targets[indicator.id] = target

    def aggregate(
        self, data: DataSlice
    ) -> tuple[dict[str, IndicatorValue], dict[str, IndicatorValue]]:
        """Return (values, amounts) keyed by indicator id, in configured order."""
        values = {
            ind.id: aggregate_indicator(ind, data, self._targets.get(ind.id))
            for ind in self.settings.indicators
        }
        amounts = {
            ind.id: aggregate_indicator(ind, data, self._targets.get(ind.id), amount=True)
            for ind in self.settings.amount_indicators
        }
        return values, amounts
