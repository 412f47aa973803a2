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

"""Rich table rendering of a serialized row tree, for terminal output."""

from __future__ import annotations

from typing import Any

from rich.table import Table
from rich.text import Text

STATUS_STYLES = {
    "above": "green",
    "below": "red",
    "on-target": "yellow",
}


def _columns(row: dict[str, Any]) -> list[tuple[str, str, str]]:
    """(section, indicator id, header) for every value column of the root row."""
    columns = []
    for section in ("values", "amounts"):
        for indicator_id, entry in row.get(section, {}).items():
            columns.append((section, indicator_id, entry.get("title") or indicator_id))
    return columns


def _cell(entry: dict[str, Any] | None) -> Text:
    if entry is None:
        return Text("")
    text = Text(str(entry.get("value", "")))
    status = entry.get("status")
    if status:
        if status in STATUS_STYLES:
            text.stylize(STATUS_STYLES[status])
        text.append(f" ({status})", style="dim")
    return text


def render_table(row: dict[str, Any], title: str | None = None) -> Table:
    """Build a rich Table with one line per row, indented by depth.

    Concept rows are shown under their group in italics.
    """
    columns = _columns(row)
    table = Table(title=title, show_lines=False)
    table.add_column("Row")
    table.add_column("Respondents", justify="right")
    for _, _, header in columns:
        table.add_column(header, justify="right")

    def _add(node: dict[str, Any], depth: int, style: str | None = None) -> None:
        label = Text("  " * depth + str(node.get("label", "")), style=style or "")
        if node.get("tooltip"):
            label.append(f"  {node['tooltip']}", style="dim")
        cells = [_cell(node.get(section, {}).get(ind_id)) for section, ind_id, _ in columns]
        table.add_row(label, str(node.get("respondents", "")), *cells)
        for concept in node.get("concepts", []):
            _add(concept, depth + 1, style="italic")
        for child in node.get("children", []):
            _add(child, depth + 1)

    _add(row, 0, style="bold")
    return table
