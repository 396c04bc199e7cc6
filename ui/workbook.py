"""Export a model snapshot to an Excel workbook (one sheet per section)."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, Dict, List, Union

import pandas as pd
from openpyxl.utils import get_column_letter

from models.schema import ENTITY_KINDS, get_schema
from models.state import ModelSnapshot

from .dashboard_data import build_snapshot, section_totals

logger = logging.getLogger(__name__)

SUMMARY_SHEET = "Summary"
MAX_SHEET_NAME = 31


def sheet_name(kind: str) -> str:
    """Excel sheet titles are limited to 31 characters and cannot contain '/'."""
    return get_schema(kind).title.replace("/", "-")[:MAX_SHEET_NAME]


def _autosize(worksheet) -> None:
    for column_cells in worksheet.columns:
        width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column_cells)
        letter = get_column_letter(column_cells[0].column)
        worksheet.column_dimensions[letter].width = min(max(width + 2, 10), 60)


def workbook_frames(snapshot: ModelSnapshot) -> Dict[str, pd.DataFrame]:
    """Sheet name -> frame, summary first."""
    dashboard = build_snapshot(snapshot)
    frames: Dict[str, pd.DataFrame] = {SUMMARY_SHEET: dashboard.summary}
    for kind in ENTITY_KINDS:
        table = dashboard.tables[kind].reset_index(drop=True)
        totals = section_totals(kind, dashboard.totals)
        if totals:
            label_column = table.columns[0]
            footer = pd.DataFrame(
                [{label_column: label, table.columns[1]: value} for label, value in totals],
                columns=table.columns,
            )
            table = pd.concat([table, footer], ignore_index=True)
        frames[sheet_name(kind)] = table
    return frames


def _write_frames(target: Union[Path, BinaryIO], frames: Dict[str, pd.DataFrame]) -> None:
    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        for name, frame in frames.items():
            frame.to_excel(writer, sheet_name=name, index=False)
            _autosize(writer.sheets[name])


def export_workbook(snapshot: ModelSnapshot, path: Union[str, Path]) -> List[str]:
    """Write every section plus the summary; returns the sheet names written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frames = workbook_frames(snapshot)
    _write_frames(path, frames)
    logger.info(f"Exported {len(frames)} sheets to {path}")
    return list(frames)


def workbook_bytes(snapshot: ModelSnapshot) -> bytes:
    buffer = io.BytesIO()
    _write_frames(buffer, workbook_frames(snapshot))
    return buffer.getvalue()
