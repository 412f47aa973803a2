"""Tests for indicator aggregation, rounding and target classification."""

import pytest

from tabledata.engine.aggregator import (
    RowAggregator,
    TargetStatus,
    aggregate_indicator,
    classify_target,
    compute_measure,
    resolve_measure,
    round_value,
)
from tabledata.engine.grouping import RecordSlice, TallySlice
from tabledata.schemas import CampaignTarget, Indicator, IndicatorType, Measure


def _indicator(**kwargs) -> Indicator:
    data = {"id": "i1", "question": "Q1"}
    data.update(kwargs)
    return Indicator.model_validate(data)


def _target(target=100, margin=5, revert_calcul=False) -> CampaignTarget:
    return CampaignTarget(id="t1", name="Goal", target=target, margin=margin, revert_calcul=revert_calcul)


# -----------------------------------------------------------------------------
# Measures
# -----------------------------------------------------------------------------


class TestMeasures:
    """Tests for sum / average / percentage / count."""

    def test_percentage_of_distribution(self):
        """30 yes out of 50 answers is 60 percent."""
        data = TallySlice({"Q1": {"yes": 30, "no": 20}})
        indicator = _indicator(measure="percentage", response_items=["yes"], digits=0)

        result = aggregate_indicator(indicator, data)

        assert result.value == 60
        assert isinstance(result.value, int)
        assert result.status is None

    def test_sum_of_numeric_answers(self):
        data = RecordSlice([{"Q1": 10}, {"Q1": "2.5"}, {"Q1": None}, {"other": 4}])
        assert compute_measure(_indicator(), Measure.SUM, data) == 12.5

    def test_sum_without_observations_is_zero(self):
        data = RecordSlice([{"other": 1}])
        assert compute_measure(_indicator(), Measure.SUM, data) == 0.0

    def test_sum_of_weighted_distribution(self):
        """Numeric items in a distribution are weighted by their counts."""
        data = TallySlice({"Q1": {"1": 3, "5": 2}})
        assert compute_measure(_indicator(), Measure.SUM, data) == 13.0
        assert compute_measure(_indicator(), Measure.AVERAGE, data) == pytest.approx(2.6)

    def test_average(self):
        data = RecordSlice([{"Q1": 4}, {"Q1": 6}, {"Q1": "n/a"}])
        assert compute_measure(_indicator(), Measure.AVERAGE, data) == 5.0

    def test_average_of_empty_group_is_zero(self):
        assert compute_measure(_indicator(), Measure.AVERAGE, RecordSlice([])) == 0.0
        assert compute_measure(_indicator(), Measure.AVERAGE, TallySlice({})) == 0.0

    def test_booleans_are_not_numbers(self):
        data = RecordSlice([{"Q1": True}, {"Q1": 3}])
        assert compute_measure(_indicator(), Measure.AVERAGE, data) == 3.0

    def test_percentage_of_empty_group_is_zero(self):
        indicator = _indicator(response_items=["yes"])
        assert compute_measure(indicator, Measure.PERCENTAGE, RecordSlice([])) == 0.0

    def test_percentage_matches_numeric_items_as_strings(self):
        data = RecordSlice([{"Q1": 9}, {"Q1": 10.0}, {"Q1": 3}])
        indicator = _indicator(response_items=[9, 10])
        assert compute_measure(indicator, Measure.PERCENTAGE, data) == pytest.approx(200 / 3)

    def test_percentage_multi_select_counts_respondent_once(self):
        data = RecordSlice([{"Q1": ["a", "b"]}, {"Q1": ["c"]}])
        indicator = _indicator(response_items=["a", "b"])
        assert compute_measure(indicator, Measure.PERCENTAGE, data) == 50.0

    def test_count_with_and_without_items(self):
        data = TallySlice({"Q1": {"yes": 3, "no": 4}})
        assert compute_measure(_indicator(response_items=["no"]), Measure.COUNT, data) == 4.0
        assert compute_measure(_indicator(), Measure.COUNT, data) == 7.0

    def test_respondents_indicator_uses_respondent_count(self):
        indicator = Indicator(id="n", type=IndicatorType.RESPONDENTS)
        data = RecordSlice([{"_weight": 2}, {}, {"x": 1}])
        assert aggregate_indicator(indicator, data).value == 4.0

    def test_measure_defaults_per_type(self):
        assert resolve_measure(_indicator(type="numeric")) is Measure.AVERAGE
        assert resolve_measure(_indicator(type="choice")) is Measure.PERCENTAGE
        assert resolve_measure(Indicator(id="n", type="respondents")) is Measure.COUNT
        assert resolve_measure(_indicator(type="numeric"), amount=True) is Measure.SUM
        assert resolve_measure(_indicator(measure="count"), amount=True) is Measure.COUNT


# -----------------------------------------------------------------------------
# Rounding
# -----------------------------------------------------------------------------


class TestRounding:
    """Tests for round-half-away-from-zero rounding."""

    @pytest.mark.parametrize(
        "value,digits,expected",
        [
            (0.5, 0, 1),
            (1.5, 0, 2),
            (2.5, 0, 3),
            (-0.5, 0, -1),
            (-2.5, 0, -3),
            (2.675, 2, 2.68),
            (66.66666, 1, 66.7),
            (1.05, 1, 1.1),
            (7.0, 1, 7.0),
        ],
    )
    def test_half_away_from_zero(self, value, digits, expected):
        assert round_value(value, digits) == expected

    def test_zero_digits_renders_int(self):
        assert isinstance(round_value(59.6, 0), int)
        assert round_value(59.6, 0) == 60

    def test_no_negative_zero(self):
        result = round_value(-0.04, 1)
        assert result == 0.0
        assert str(result) == "0.0"

    @pytest.mark.parametrize("value", [0.15, 2.675, 1 / 3, 123.456789, -8.25, 1e-7])
    @pytest.mark.parametrize("digits", [0, 1, 2, 4])
    def test_rounding_is_idempotent(self, value, digits):
        once = round_value(value, digits)
        assert round_value(once, digits) == once

    def test_very_large_values(self):
        assert round_value(1e45, 1) == 1e45
        assert round_value(1e45, 0) == 10**45
        assert round_value(-1.5e60, 2) == -1.5e60

    def test_huge_sum_is_rounded(self):
        data = RecordSlice([{"Q1": 1e45}])
        assert aggregate_indicator(_indicator(measure="sum", digits=1), data).value == 1e45

    def test_overflowing_sum_reports_zero(self, caplog):
        data = RecordSlice([{"Q1": 1e308}, {"Q1": 1e308}])
        with caplog.at_level("WARNING"):
            result = aggregate_indicator(_indicator(measure="sum", digits=1), data)
        assert result.value == 0.0
        assert result.raw == 0.0
        assert "overflowed" in caplog.text

    def test_raw_value_is_kept_unrounded(self):
        data = RecordSlice([{"Q1": 1}, {"Q1": 2}, {"Q1": 2}])
        result = aggregate_indicator(_indicator(measure="average", digits=1), data)
        assert result.value == 1.7
        assert result.raw == pytest.approx(5 / 3)


# -----------------------------------------------------------------------------
# Target classification
# -----------------------------------------------------------------------------


class TestTargetClassification:
    """Tests for target / margin status."""

    def test_above_target(self):
        assert classify_target(108, _target()) is TargetStatus.ABOVE

    def test_revert_calcul_swaps_labels(self):
        assert classify_target(108, _target(revert_calcul=True)) is TargetStatus.BELOW
        assert classify_target(92, _target(revert_calcul=True)) is TargetStatus.ABOVE

    def test_within_margin_is_on_target(self):
        assert classify_target(103, _target()) is TargetStatus.ON_TARGET
        assert classify_target(96, _target()) is TargetStatus.ON_TARGET
        assert classify_target(103, _target(revert_calcul=True)) is TargetStatus.ON_TARGET

    def test_margin_boundaries_leave_the_band(self):
        assert classify_target(105, _target()) is TargetStatus.ABOVE
        assert classify_target(95, _target()) is TargetStatus.BELOW

    def test_exact_hit_with_zero_margin(self):
        assert classify_target(100, _target(margin=0)) is TargetStatus.ON_TARGET
        assert classify_target(100.1, _target(margin=0)) is TargetStatus.ABOVE

    @pytest.mark.parametrize("value", [80, 94.5, 95, 99, 100, 101, 105, 108, 250])
    @pytest.mark.parametrize("margin", [0, 1, 5])
    def test_mirror_symmetry(self, value, margin):
        target = _target(margin=margin)
        mirrored = 2 * target.target - value
        status = classify_target(value, target)
        mirrored_status = classify_target(mirrored, target)
        swap = {
            TargetStatus.ABOVE: TargetStatus.BELOW,
            TargetStatus.BELOW: TargetStatus.ABOVE,
            TargetStatus.ON_TARGET: TargetStatus.ON_TARGET,
        }
        assert mirrored_status is swap[status]

    def test_status_does_not_change_value(self):
        data = TallySlice({"Q1": 108})
        indicator = _indicator(measure="sum", digits=0, campaign_target_id="t1")
        with_target = aggregate_indicator(indicator, data, _target())
        without = aggregate_indicator(indicator, data)
        assert with_target.value == without.value == 108
        assert with_target.to_dict() == {
            "value": 108,
            "title": "",
            "status": "above",
            "target": 100.0,
            "margin": 5.0,
            "target_name": "Goal",
        }


# -----------------------------------------------------------------------------
# RowAggregator
# -----------------------------------------------------------------------------


class TestRowAggregator:
    """Tests for computing every indicator of a widget."""

    def test_values_and_amounts(self, make_widget, survey_records):
        aggregator = RowAggregator(make_widget())
        values, amounts = aggregator.aggregate(RecordSlice(survey_records))

        assert list(values) == ["sat", "rec"]
        assert values["sat"].value == 7.0
        assert values["rec"].value == 60.0
        assert amounts["spend"].value == 450

    def test_unresolved_target_is_skipped_with_warning(self, make_widget, caplog):
        indicator = {"id": "score", "question": "Q1", "measure": "sum", "campaign_target_id": 99}
        widget = make_widget(
            indicators=[indicator],
            amount_indicators=[],
            campaign_targets=[{"id": 1, "target": 10, "margin": 1}],
        )

        with caplog.at_level("WARNING"):
            values, _ = RowAggregator(widget).aggregate(TallySlice({"Q1": 50}))

        assert values["score"].status is None
        assert "not found" in caplog.text

    def test_resolved_target_classifies(self, make_widget):
        indicator = {"id": "score", "question": "Q1", "measure": "sum", "digits": 0, "campaign_target_id": "7"}
        widget = make_widget(
            indicators=[indicator],
            amount_indicators=[],
            campaign_targets=[{"id": 7, "name": "Q3 goal", "target": 100, "margin": 5, "revert_calcul": False}],
        )
        values, _ = RowAggregator(widget).aggregate(TallySlice({"Q1": 108}))
        assert values["score"].status is TargetStatus.ABOVE
