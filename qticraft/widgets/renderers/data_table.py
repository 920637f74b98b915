"""Minimal HTML renderer for tabular widgets."""

from __future__ import annotations

import html

from qticraft.widgets.geometry import format_number


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value)
    return html.escape(str(value))


def render_data_table(widget) -> str:
    parts = ["<table>"]
    if widget.title:
        parts.append(f"<caption>{html.escape(widget.title)}</caption>")
    parts.append("<thead><tr>")
    for col in widget.columns:
        parts.append(f'<th scope="col">{html.escape(col.label)}</th>')
    parts.append("</tr></thead><tbody>")
    for row in widget.rows:
        parts.append("<tr>")
        for col in widget.columns:
            value = _cell(row.get(col.key))
            if col.key == widget.rowHeaderKey:
                parts.append(f'<th scope="row">{value}</th>')
            else:
                parts.append(f"<td>{value}</td>")
        parts.append("</tr>")
    parts.append("</tbody></table>")
    return "".join(parts)
