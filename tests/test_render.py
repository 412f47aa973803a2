"""Tests for terminal table rendering."""

from rich.console import Console

from conftest import SATISFACTION, widget_payload
from tabledata import service
from tabledata.render import render_table


def _render_text(table) -> str:
    console = Console(width=120, record=True, color_system=None)
    console.print(table)
    return console.export_text()


def _tree(survey_records, **kwargs):
    return service.build_data({"calculation_data": survey_records, "widget": widget_payload(**kwargs)})


def test_columns_follow_indicator_titles(survey_records):
    table = render_table(_tree(survey_records, breakdowns=["region"]), title="Stores")

    headers = [column.header for column in table.columns]
    assert headers == ["Row", "Respondents", "Satisfaction", "Would recommend", "Spend"]
    assert table.title == "Stores"


def test_one_line_per_row(survey_records):
    table = render_table(_tree(survey_records, breakdowns=["region", "store"]))
    # Total + 3 regions + 4 stores
    assert table.row_count == 8


def test_children_are_indented(survey_records):
    text = _render_text(render_table(_tree(survey_records, breakdowns=["region", "store"])))
    assert "Total" in text
    assert "  North" in text
    assert "    A" in text


def test_concepts_are_listed_under_their_group(survey_records):
    table = render_table(_tree(survey_records, breakdowns=["region"], concept_breakdowns=["channel"]))
    # Total + 3 regions + concepts (North: web, shop; South: web; unspecified: shop)
    assert table.row_count == 8


def test_status_is_shown(survey_records):
    indicator = dict(SATISFACTION, campaign_target_id="goal")
    tree = _tree(
        survey_records,
        indicators=[indicator],
        amount_indicators=[],
        campaign_targets=[{"id": "goal", "target": 6, "margin": 0.5}],
    )
    text = _render_text(render_table(tree))
    assert "7.0 (above)" in text
