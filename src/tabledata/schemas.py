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

"""Pydantic schemas for BuildData / BuildRow requests and widget settings.

These mirror the payload the host application prepares for a table widget:
``{calculation_data, widget: {settings, schema_questions, campaign_targets}}``.
All models are frozen; a request is validated once and then only read.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from tabledata.errors import ConfigurationError

DEFAULT_DIGITS = 1


class IndicatorType(str, Enum):
    """Discriminates how an indicator reads its observations."""

    NUMERIC = "numeric"  # numeric answers (scores, amounts)
    CHOICE = "choice"  # categorical answers matched against response_items
    RESPONDENTS = "respondents"  # number of respondents in the group


class Measure(str, Enum):
    """Statistic computed for an indicator."""

    SUM = "sum"
    AVERAGE = "average"
    PERCENTAGE = "percentage"
    COUNT = "count"


class OrderDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _as_str_id(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    return value


def _empty_to_tuple(value: Any) -> Any:
    return () if value is None else value


class Indicator(BaseModel):
    """One configured measure, displayed as one column of every row."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: IndicatorType = IndicatorType.NUMERIC
    question: str | None = None
    title: str = ""
    measure: Measure | None = None
    response_items: tuple[str, ...] = ()
    digits: int = DEFAULT_DIGITS
    campaign_target_id: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _as_str_id(value)

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("question", mode="before")
    @classmethod
    def _coerce_question(cls, value: Any) -> Any:
        return _as_str_id(value)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if value is None:
            return IndicatorType.NUMERIC
        if isinstance(value, str):
            return value.strip().lower() or IndicatorType.NUMERIC
        return value

    @field_validator("measure", mode="before")
    @classmethod
    def _normalize_measure(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("response_items", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("response_items must be a list")
        return tuple(str(item) for item in value)

    @field_validator("digits", mode="before")
    @classmethod
    def _check_digits(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_DIGITS
        if isinstance(value, bool):
            raise ValueError(f"digits must be a non-negative integer, got {value!r}")
        if isinstance(value, str):
            text = value.strip()
            if not text.isdigit():
                raise ValueError(f"digits must be a non-negative integer, got {value!r}")
            return int(text)
        if isinstance(value, int):
            if value < 0:
                raise ValueError(f"digits must be a non-negative integer, got {value!r}")
            return value
        raise ValueError(f"digits must be a non-negative integer, got {value!r}")

    @field_validator("campaign_target_id", mode="before")
    @classmethod
    def _coerce_target_id(cls, value: Any) -> Any:
        value = _as_str_id(value)
        if value == "":
            return None
        return value

    @model_validator(mode="after")
    def _require_question(self) -> "Indicator":
        if self.type is not IndicatorType.RESPONDENTS and not self.question:
            raise ValueError(f"indicator '{self.id}' has no question")
        return self


class CampaignTarget(BaseModel):
    """A numeric goal with a tolerance band around it."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    name: str = ""
    target: float
    margin: float = 0.0
    revert_calcul: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _as_str_id(value)

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("target", "margin", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError(f"expected a number, got {value!r}")
        return value

    @field_validator("margin")
    @classmethod
    def _check_margin(cls, value: float) -> float:
        if value < 0:
            raise ValueError(f"margin must not be negative, got {value}")
        return value


class WidgetSettings(BaseModel):
    """Immutable configuration for one build call."""

    model_config = ConfigDict(frozen=True)

    indicators: tuple[Indicator, ...] = ()
    amount_indicators: tuple[Indicator, ...] = ()
    breakdowns: tuple[str, ...] = ()
    concept_breakdowns: tuple[str | None, ...] = ()
    order_column: str | None = None
    order_direction: OrderDirection = OrderDirection.ASC

    @field_validator(
        "indicators", "amount_indicators", "breakdowns", "concept_breakdowns", mode="before"
    )
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return _empty_to_tuple(value)

    @field_validator("breakdowns")
    @classmethod
    def _check_breakdowns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for breakdown in value:
            if not breakdown.strip():
                raise ValueError("breakdown identifiers must be non-empty strings")
        return value

    @field_validator("concept_breakdowns")
    @classmethod
    def _blank_concepts(cls, value: tuple[str | None, ...]) -> tuple[str | None, ...]:
        return tuple(c if c and c.strip() else None for c in value)

    @field_validator("order_column", mode="before")
    @classmethod
    def _coerce_order_column(cls, value: Any) -> Any:
        value = _as_str_id(value)
        if value == "":
            return None
        return value

    @field_validator("order_direction", mode="before")
    @classmethod
    def _coerce_direction(cls, value: Any) -> Any:
        if value is None or value == "":
            return OrderDirection.ASC
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _unique_indicator_ids(self) -> "WidgetSettings":
        seen: set[str] = set()
        for indicator in (*self.indicators, *self.amount_indicators):
            if indicator.id in seen:
                raise ValueError(f"duplicate indicator id '{indicator.id}'")
            seen.add(indicator.id)
        return self

    def all_indicators(self) -> tuple[Indicator, ...]:
        return (*self.indicators, *self.amount_indicators)

    def concept_breakdown_at(self, depth: int) -> str | None:
        """Concept breakdown configured for the breakdown at ``depth``, if any."""
        if 0 <= depth < len(self.concept_breakdowns):
            return self.concept_breakdowns[depth]
        return None


class Widget(BaseModel):
    """Widget settings plus the records resolved for it by the host."""

    model_config = ConfigDict(frozen=True)

    settings: WidgetSettings
    schema_questions: tuple[str, ...] = ()
    campaign_targets: tuple[CampaignTarget, ...] = ()

    @field_validator("schema_questions", "campaign_targets", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return _empty_to_tuple(value)

    @model_validator(mode="after")
    def _questions_resolve(self) -> "Widget":
        # An empty schema means the host could not list questions; skip the check.
        if not self.schema_questions:
            return self
        known = set(self.schema_questions)
        for indicator in self.settings.all_indicators():
            if indicator.question and indicator.question not in known:
                raise ValueError(
                    f"indicator '{indicator.id}' references undefined question "
                    f"'{indicator.question}'"
                )
        return self

    def target_for(self, indicator: Indicator) -> CampaignTarget | None:
        """Resolve the indicator's campaign target, or None when unresolvable."""
        if indicator.campaign_target_id is None:
            return None
        for target in self.campaign_targets:
            if target.id == indicator.campaign_target_id:
                return target
        return None


class BuildDataRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    calculation_data: Any
    widget: Widget


class BuildRowRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    breakdown_label: str = ""
    breakdown_tooltip: str | None = None
    row_data: Any = None
    widget: Widget

    @field_validator("breakdown_label", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into a single readable message."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(loc) for loc in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def _validate(model: type[BaseModel], payload: Any) -> Any:
    if not isinstance(payload, Mapping):
        raise ConfigurationError(
            f"Request must be an object, got {type(payload).__name__}"
        )
    try:
        return model.model_validate(dict(payload))
    except ValidationError as e:
        raise ConfigurationError(describe_validation_error(e)) from e


def parse_build_data_request(payload: Any) -> BuildDataRequest:
    """Validate a BuildData payload.

    Raises:
        ConfigurationError: If the payload is malformed
    """
    return _validate(BuildDataRequest, payload)


def parse_build_row_request(payload: Any) -> BuildRowRequest:
    """Validate a BuildRow payload.

    Raises:
        ConfigurationError: If the payload is malformed
    """
    return _validate(BuildRowRequest, payload)


def parse_widget(payload: Any) -> Widget:
    """Validate a widget payload on its own."""
    return _validate(Widget, payload)
