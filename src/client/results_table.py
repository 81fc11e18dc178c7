"""Tabular view of ingest results with inline missing/unmatched warnings."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

COLUMNS: tuple[tuple[str, str], ...] = (
    ("vendor", "Vendor"),
    ("invoice_number", "Invoice #"),
    ("invoice_date", "Invoice Date"),
    ("due_date", "Due Date"),
    ("total_amount", "Total"),
    ("line_items", "Line Items"),
)

LINE_ITEM_COLUMNS: tuple[tuple[str, str], ...] = (
    ("description", "Description"),
    ("quantity", "Qty"),
    ("unit_price", "Unit Price"),
    ("line_total", "Line Total"),
)

EMPTY_CELL = "-"


@dataclass
class ResultRow:
    cells: list[str]
    warnings: list[str] = field(default_factory=list)
    line_items: list[list[str]] = field(default_factory=list)


def format_cell(value: Any) -> str:
    if value is None:
        return EMPTY_CELL
    return str(value)


def build_rows(results: Sequence[dict[str, Any]]) -> list[ResultRow]:
    rows = []
    for result in results:
        warnings = []
        if result.get("error"):
            details = f" ({result['details']})" if result.get("details") else ""
            warnings.append(f"Error: {result['error']}{details}")
        missing = result.get("missing_fields") or []
        if missing:
            warnings.append(f"Missing fields: {', '.join(missing)}")
        unmatched = result.get("unmatched_fields") or []
        if unmatched:
            warnings.append(f"Unmatched fields: {', '.join(unmatched)}")

        items = result.get("line_items")
        line_items = []
        if isinstance(items, list):
            for item in items:
                item = item if isinstance(item, dict) else {"description": item}
                line_items.append([format_cell(item.get(k)) for k, _ in LINE_ITEM_COLUMNS])

        cells = [format_cell(result.get(k)) for k, _ in COLUMNS[:-1]]
        cells.append(f"{len(line_items)} item(s)" if line_items else "None")
        rows.append(ResultRow(cells=cells, warnings=warnings, line_items=line_items))
    return rows


def missing_fields_summary(results: Sequence[dict[str, Any]]) -> list[str]:
    """One entry per result that has missing fields, for the banner above the table"""
    return [", ".join(r["missing_fields"]) for r in results if r.get("missing_fields")]


def render_text(results: Sequence[dict[str, Any]]) -> str:
    """Plain-text rendering for terminals and logs"""
    lines = []
    summary = missing_fields_summary(results)
    if summary:
        lines.append("Warning: Some fields present in the expected fields could not be found in the invoice:")
        lines.extend(f"  - {entry}" for entry in summary)
        lines.append("")

    header = [title for _, title in COLUMNS]
    rows = build_rows(results)
    widths = [len(h) for h in header]
    for row in rows:
        widths = [max(w, len(c)) for w, c in zip(widths, row.cells)]

    lines.append(" | ".join(h.ljust(w) for h, w in zip(header, widths)))
    lines.append("-+-".join("-" * w for w in widths))
    for result, row in zip(results, rows):
        name = result.get("file_name")
        if name:
            lines.append(f"[{name}]")
        for warning in row.warnings:
            lines.append(f"  ! {warning}")
        lines.append(" | ".join(c.ljust(w) for c, w in zip(row.cells, widths)))
        for item in row.line_items:
            lines.append("    - " + " | ".join(f"{title}: {v}" for (_, title), v in zip(LINE_ITEM_COLUMNS, item)))
    return "\n".join(lines)
