# src/agrilot/services/export.py

"""
Task / infrastructure export.

Builds an .xlsx workbook (openpyxl) or an HTML report for the PDF renderer,
hands the file to the share sheet and removes it afterwards. Callers pass
already filtered and sorted records (see views.lists); nothing here touches
the store.
"""

from __future__ import annotations

import asyncio
import html
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from ..core.ports import PdfRenderer, ShareSheet
from ..store.query import Record
from ..views.lists import inspection_status

logger = logging.getLogger(__name__)


class ExportFormat(StrEnum):
    EXCEL = "excel"
    PDF = "pdf"


MIME_TYPES = {
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.PDF: "application/pdf",
}
EXTENSIONS = {ExportFormat.EXCEL: "xlsx", ExportFormat.PDF: "pdf"}

HEADER_FONT = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
HEADER_FILL = PatternFill(start_color="2E7D32", end_color="2E7D32", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
CELL_BORDER = Border(
    bottom=Side(style="thin", color="E2E8F0"),
    right=Side(style="thin", color="E2E8F0"),
)

PRIORITY_FILLS = {
    "high": PatternFill(start_color="FFCDD2", end_color="FFCDD2", fill_type="solid"),
    "medium": PatternFill(start_color="FFE0B2", end_color="FFE0B2", fill_type="solid"),
    "low": PatternFill(start_color="C8E6C9", end_color="C8E6C9", fill_type="solid"),
}

Column = tuple[str, Callable[[Record], Any]]


def _day(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value is not None else ""


def _label(value: str | None) -> str:
    return (value or "").replace("_", " ").capitalize()


TASK_COLUMNS: list[Column] = [
    ("Title", lambda t: t["title"]),
    ("Description", lambda t: t.get("description") or ""),
    ("Status", lambda t: _label(t["status"])),
    ("Priority", lambda t: _label(t["priority"])),
    ("Category", lambda t: _label(t["category"])),
    ("Due date", lambda t: _day(t["dueDate"])),
    ("Assigned to", lambda t: t.get("assignedTo") or "Unassigned"),
    ("Completed", lambda t: _day(t.get("completedAt"))),
    ("Notes", lambda t: t.get("notes") or ""),
]


def infrastructure_columns(now: datetime) -> list[Column]:
    return [
        ("Type", lambda i: _label(i["type"])),
        ("Status", lambda i: _label(i["status"])),
        ("Last inspection", lambda i: _day(i["lastInspection"])),
        ("Next inspection", lambda i: _day(i["nextInspection"])),
        (
            "Inspection",
            lambda i: _label(inspection_status(i["lastInspection"], i["nextInspection"], now)),
        ),
        ("Notes", lambda i: i.get("notes") or ""),
    ]


_SHEETS = {"Task": ("Tasks", "Task report"), "Infrastructure": ("Infrastructure", "Maintenance report")}


def _columns(type_name: str, now: datetime) -> list[Column]:
    if type_name == "Task":
        return TASK_COLUMNS
    if type_name == "Infrastructure":
        return infrastructure_columns(now)
    raise ValueError(f"cannot export {type_name!r}")


def build_workbook(type_name: str, records: Sequence[Record], now: datetime) -> Workbook:
    columns = _columns(type_name, now)
    wb = Workbook()
    ws = wb.active
    ws.title = _SHEETS[type_name][0]

    for col_idx, (name, _) in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_idx, value=name)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT

    for row_idx, rec in enumerate(records, 2):
        for col_idx, (name, get) in enumerate(columns, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=get(rec))
            cell.border = CELL_BORDER
            if name == "Priority" and rec.get("priority") in PRIORITY_FILLS:
                cell.fill = PRIORITY_FILLS[rec["priority"]]

    for col_idx, (name, _) in enumerate(columns, 1):
        letter = ws.cell(row=1, column=col_idx).column_letter
        ws.column_dimensions[letter].width = max(12, len(name) + 4)
    ws.freeze_panes = "A2"
    return wb


def render_html(type_name: str, records: Sequence[Record], now: datetime) -> str:
    columns = _columns(type_name, now)
    title = _SHEETS[type_name][1]
    head = "".join(f"<th>{html.escape(name)}</th>" for name, _ in columns)
    rows = []
    for rec in records:
        css = f' class="priority-{html.escape(rec["priority"])}"' if rec.get("priority") else ""
        cells = "".join(f"<td>{html.escape(str(get(rec)))}</td>" for _, get in columns)
        rows.append(f"<tr{css}>{cells}</tr>")
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><style>"
        "body{font-family:Arial,sans-serif}"
        "table{width:100%;border-collapse:collapse;margin-top:20px}"
        "th,td{border:1px solid #ddd;padding:8px;text-align:left}"
        "th{background-color:#f5f5f5}"
        ".priority-high td{color:#d32f2f}.priority-medium td{color:#f57c00}"
        ".priority-low td{color:#388e3c}"
        "</style></head><body>"
        f"<h1>{html.escape(title)}</h1>"
        f"<p>Generated on {now.strftime('%Y-%m-%d')}</p>"
        f"<table><thead><tr>{head}</tr></thead><tbody>{''.join(rows)}</tbody></table>"
        "</body></html>"
    )


def safe_filename(name: str, default: str = "export") -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", (name or "").strip()).strip("-.")
    return cleaned or default


async def write_export(
    type_name: str,
    records: Iterable[Record],
    fmt: ExportFormat | str,
    *,
    export_dir: str | Path,
    filename: str,
    pdf_renderer: PdfRenderer | None = None,
    now: datetime | None = None,
) -> Path:
    """Write the export file and return its path."""
    fmt = ExportFormat(fmt)
    now = now or datetime.now(UTC)
    items = list(records)

    out_dir = Path(export_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{safe_filename(filename)}.{EXTENSIONS[fmt]}"

    if fmt is ExportFormat.EXCEL:
        wb = build_workbook(type_name, items, now)
        await asyncio.to_thread(wb.save, str(path))
    else:
        if pdf_renderer is None:
            raise ValueError("PDF export needs a PdfRenderer")
        path = Path(await pdf_renderer.render(render_html(type_name, items, now), str(path)))

    logger.info("Exported %d %s rows to %s", len(items), type_name, path)
    return path


async def export_and_share(
    type_name: str,
    records: Iterable[Record],
    fmt: ExportFormat | str,
    *,
    share_sheet: ShareSheet,
    export_dir: str | Path,
    filename: str,
    pdf_renderer: PdfRenderer | None = None,
    now: datetime | None = None,
) -> None:
    """Export, open the share sheet, then remove the temporary file."""
    fmt = ExportFormat(fmt)
    path = await write_export(
        type_name,
        records,
        fmt,
        export_dir=export_dir,
        filename=filename,
        pdf_renderer=pdf_renderer,
        now=now,
    )
    try:
        await share_sheet.share(
            str(path),
            mime_type=MIME_TYPES[fmt],
            title=f"{_SHEETS[type_name][0]}.{EXTENSIONS[fmt]}",
        )
    finally:
        path.unlink(missing_ok=True)


async def export_tasks(
    tasks: Iterable[Record],
    fmt: ExportFormat | str,
    *,
    share_sheet: ShareSheet,
    export_dir: str | Path,
    filename: str = "tasks",
    pdf_renderer: PdfRenderer | None = None,
    now: datetime | None = None,
) -> None:
    await export_and_share(
        "Task",
        tasks,
        fmt,
        share_sheet=share_sheet,
        export_dir=export_dir,
        filename=filename,
        pdf_renderer=pdf_renderer,
        now=now,
    )


async def export_infrastructure(
    items: Iterable[Record],
    fmt: ExportFormat | str,
    *,
    share_sheet: ShareSheet,
    export_dir: str | Path,
    filename: str = "infrastructure",
    pdf_renderer: PdfRenderer | None = None,
    now: datetime | None = None,
) -> None:
    await export_and_share(
        "Infrastructure",
        items,
        fmt,
        share_sheet=share_sheet,
        export_dir=export_dir,
        filename=filename,
        pdf_renderer=pdf_renderer,
        now=now,
    )
