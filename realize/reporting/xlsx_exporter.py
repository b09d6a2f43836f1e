"""Realize Reporter — XLSX Exporter.

Writes projected report tables to an Excel workbook, one sheet per
breakdown, with CPA cells filled green/red from the projector's flags.
"""

import os
import re
from pathlib import Path
from typing import Mapping, Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from realize.config import settings
from realize.analyzer.projector import ProjectedTable
from realize.core.logging import get_logger

logger = get_logger("reporting.xlsx")

GOOD_FILL = PatternFill(fill_type="solid", fgColor="FFB6FFB6")
BAD_FILL = PatternFill(fill_type="solid", fgColor="FFFFB6B6")
CPA_FILLS = {"good": GOOD_FILL, "bad": BAD_FILL}

NUMBER_FORMATS = {
    "currency": "#,##0.00",
    "count": "#,##0",
    "percent": "0.00%",
}

MAX_SHEET_TITLE = 31


def resolve_download_dir(configured: Optional[str] = None) -> Path:
    """Configured download directory if usable, otherwise ``~/Downloads``."""
    fallback = Path.home() / "Downloads"
    candidate = (configured if configured is not None else settings.download_directory).strip()
    if candidate:
        path = Path(candidate).expanduser()
        if path.is_dir() and os.access(path, os.W_OK):
            return path
        logger.warning(f"Download directory invalid or not writable: {path}; using {fallback}")
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def _slug(value: Optional[str]) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9_-]+", "_", value or "")
    return re.sub(r"_+", "_", cleaned).strip("_")


def workbook_filename(
    account_name: str, tag: str, start_date: str, end_date: str
) -> str:
    """``RealizeReport-<account>-<tag>-<start>_to_<end>.xlsx``."""
    parts = ["RealizeReport"]
    account = _slug(account_name)
    if account:
        parts.append(account)
    parts.append(tag)
    start, end = _slug(start_date), _slug(end_date)
    if start and end:
        parts.append(f"{start}_to_{end}")
    return "-".join(parts) + ".xlsx"


def _write_sheet(ws, table: ProjectedTable) -> None:
    columns = table.columns
    ws.append([c.header for c in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for idx, column in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = column.width

    cpa_idx = next((i for i, c in enumerate(columns, start=1) if c.key == "cpa"), None)
    for row_number, row in enumerate(table.rows, start=2):
        ws.append([row.values.get(c.key) for c in columns])
        for idx, column in enumerate(columns, start=1):
            fmt = NUMBER_FORMATS.get(column.kind)
            if fmt:
                ws.cell(row=row_number, column=idx).number_format = fmt
        if cpa_idx and row.cpa_flag:
            ws.cell(row=row_number, column=cpa_idx).fill = CPA_FILLS[row.cpa_flag]


def write_workbook(
    tables: Mapping[str, ProjectedTable],
    account_name: str,
    start_date: str,
    end_date: str,
    tag: Optional[str] = None,
    directory: Optional[Path] = None,
) -> Path:
    """Write one sheet per table and return the saved file path."""
    if not tables:
        raise ValueError("No report tables to export")

    wb = Workbook()
    wb.remove(wb.active)
    for name, table in tables.items():
        _write_sheet(wb.create_sheet(title=name[:MAX_SHEET_TITLE]), table)

    if tag is None:
        tag = next(iter(tables)) if len(tables) == 1 else "all"
    target_dir = directory or resolve_download_dir()
    path = target_dir / workbook_filename(account_name, tag, start_date, end_date)

    logger.info(f"Writing workbook {path}", extra={"row_count": sum(len(t.rows) for t in tables.values())})
    try:
        wb.save(path)
    except OSError as e:
        logger.error(f"Failed to write workbook {path}: {e}")
        raise
    return path
