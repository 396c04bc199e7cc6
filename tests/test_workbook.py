# =============================================================================
# SAAS FINMODEL - WORKBOOK EXPORT TESTS
# =============================================================================

import pytest
import sys
import os
import io

from openpyxl import load_workbook

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.schema import ENTITY_KINDS
from ui.workbook import SUMMARY_SHEET, export_workbook, sheet_name, workbook_bytes, workbook_frames


class TestSheetNames:
    def test_titles(self):
        assert sheet_name("funding_rounds") == "Equity Funding"
        assert sheet_name("cogs") == "Cost of Goods Sold"

    def test_within_excel_limit(self):
        for kind in ENTITY_KINDS:
            name = sheet_name(kind)
            assert len(name) <= 31
            assert "/" not in name


class TestExport:
    """Tests for the Excel export."""

    def test_frames_have_totals_footer(self, snapshot):
        frames = workbook_frames(snapshot)
        assert list(frames)[0] == SUMMARY_SHEET
        channels = frames[sheet_name("marketing_channels")]
        assert len(channels) == 4 + 3
        assert channels.iloc[4]["Channel"] == "Total Budget"
        assert channels.iloc[4]["Monthly Budget"] == 13000.0

    def test_export_file(self, snapshot, tmp_path):
        path = tmp_path / "out" / "model.xlsx"
        sheets = export_workbook(snapshot, path)
        assert path.exists()
        assert len(sheets) == len(ENTITY_KINDS) + 1

        workbook = load_workbook(path)
        assert workbook.sheetnames == sheets
        summary = workbook[SUMMARY_SHEET]
        assert summary["A1"].value == "metric"
        assert summary["A2"].value == "Total Revenue"
        assert summary["B2"].value == 89000

    def test_bytes(self, snapshot):
        workbook = load_workbook(io.BytesIO(workbook_bytes(snapshot)))
        assert SUMMARY_SHEET in workbook.sheetnames
        assert sheet_name("departments") in workbook.sheetnames
