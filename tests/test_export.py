# tests/test_export.py

from __future__ import annotations

import io
from pathlib import Path

import pytest
from openpyxl import load_workbook

from agrilot.services.export import (
    MIME_TYPES,
    ExportFormat,
    export_infrastructure,
    export_tasks,
    render_html,
    safe_filename,
    write_export,
)

from .builders import NOW, infra_data, task_data
from .fakes import FakePdfRenderer, FakeShareSheet


@pytest.mark.asyncio
async def test_excel_export_is_shared_then_removed(tmp_path: Path) -> None:
    share = FakeShareSheet()
    tasks = [task_data(id="a", priority="high"), task_data(id="b", title="Prune", priority="low")]

    await export_tasks(tasks, "excel", share_sheet=share, export_dir=tmp_path, now=NOW)

    assert len(share.shared) == 1
    shared = share.shared[0]
    assert shared.existed
    assert shared.mime_type == MIME_TYPES[ExportFormat.EXCEL]
    assert not Path(shared.path).exists()

    ws = load_workbook(io.BytesIO(shared.content)).active
    assert ws.title == "Tasks"
    assert ws.cell(row=1, column=1).value == "Title"
    assert ws.cell(row=1, column=1).font.bold
    assert ws.cell(row=3, column=1).value == "Prune"
    assert ws.max_row == 3


@pytest.mark.asyncio
async def test_file_is_removed_even_when_sharing_fails(tmp_path: Path) -> None:
    share = FakeShareSheet(fail=True)

    with pytest.raises(RuntimeError):
        await export_tasks([task_data()], ExportFormat.EXCEL, share_sheet=share, export_dir=tmp_path)

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_pdf_export_goes_through_renderer(tmp_path: Path) -> None:
    share = FakeShareSheet()
    renderer = FakePdfRenderer()

    await export_infrastructure(
        [infra_data(notes="<b>leak</b>")],
        "pdf",
        share_sheet=share,
        export_dir=tmp_path,
        pdf_renderer=renderer,
        now=NOW,
    )

    assert len(renderer.rendered) == 1
    html = renderer.rendered[0]
    assert "Maintenance report" in html
    assert "&lt;b&gt;leak&lt;/b&gt;" in html
    assert share.shared[0].mime_type == "application/pdf"


@pytest.mark.asyncio
async def test_pdf_without_renderer_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        await write_export("Task", [], "pdf", export_dir=tmp_path, filename="tasks")


def test_render_html_marks_rows_by_priority() -> None:
    html = render_html("Task", [task_data(priority="high")], NOW)
    assert 'class="priority-high"' in html
    assert "Generated on 2024-01-01" in html


def test_safe_filename() -> None:
    assert safe_filename("tasks 2024/01") == "tasks-2024-01"
    assert safe_filename("../..") == "export"
