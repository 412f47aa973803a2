"""Pytest configuration and shared fixtures for tabledata tests."""

import logging

import pytest

from tabledata.schemas import parse_widget


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path, monkeypatch):
    """Keep tests away from the user's home config and TABLEDATA_* env vars."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in (
        "TABLEDATA_MAX_DEPTH",
        "TABLEDATA_TOTAL_LABEL",
        "TABLEDATA_UNSPECIFIED_LABEL",
        "TABLEDATA_ROW_THRESHOLD",
        "TABLEDATA_LOG_LEVEL",
        "TABLEDATA_CONFIG",
        "TABLEDATA_OUTPUT_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_log_level():
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)


SATISFACTION = {
    "id": "sat",
    "type": "numeric",
    "question": "satisfaction",
    "title": "Satisfaction",
    "measure": "average",
    "digits": 1,
}

RECOMMEND = {
    "id": "rec",
    "type": "choice",
    "question": "recommend",
    "title": "Would recommend",
    "response_items": ["yes"],
    "digits": 1,
}

SPEND = {
    "id": "spend",
    "type": "numeric",
    "question": "spend",
    "title": "Spend",
    "digits": 0,
}


def widget_payload(
    indicators=None,
    amount_indicators=None,
    breakdowns=None,
    concept_breakdowns=None,
    order_column=None,
    order_direction=None,
    schema_questions=None,
    campaign_targets=None,
) -> dict:
    """Widget payload in the shape the host application sends."""
    return {
        "settings": {
            "indicators": [SATISFACTION, RECOMMEND] if indicators is None else indicators,
            "amount_indicators": [SPEND] if amount_indicators is None else amount_indicators,
            "breakdowns": breakdowns or [],
            "concept_breakdowns": concept_breakdowns or [],
            "order_column": order_column,
            "order_direction": order_direction,
        },
        "schema_questions": schema_questions or [],
        "campaign_targets": campaign_targets or [],
    }


@pytest.fixture
def make_widget():
    """Factory returning a validated Widget."""

    def _make(**kwargs):
        return parse_widget(widget_payload(**kwargs))

    return _make


@pytest.fixture
def survey_records():
    """Five respondents; the last one has no region and no spend."""
    return [
        {"region": "North", "store": "A", "channel": "web", "satisfaction": 8, "recommend": "yes", "spend": 120},
        {"region": "North", "store": "B", "channel": "shop", "satisfaction": 6, "recommend": "no", "spend": 80},
        {"region": "South", "store": "C", "channel": "web", "satisfaction": 9, "recommend": "yes", "spend": 200},
        {"region": "North", "store": "A", "channel": "web", "satisfaction": 7, "recommend": "yes", "spend": 50},
        {"store": "D", "channel": "shop", "satisfaction": 5, "recommend": "no"},
    ]


@pytest.fixture
def tally_data():
    """Pre-aggregated calculation data nested by region."""
    return {
        "Q1": {"yes": 30, "no": 20},
        "_count": 50,
        "_groups": {
            "region": {
                "North": {"Q1": {"yes": 20, "no": 5}, "_count": 25},
                "South": {"Q1": {"yes": 10, "no": 15}, "_count": 25},
            }
        },
        "_tooltips": {"region": {"North": "Northern stores"}},
    }
