"""Tests for loading and seeding checklists."""

import json

import pandas as pd
import pytest

from compliance_checker.core.checklist_parser import ChecklistParser, get_sheet, seed_checklist


@pytest.fixture
def checklist_json(tmp_path):
    data = {
        "metadata": {"source": "NBA checklist", "version": "2024"},
        "sheets": [
            {
                "sheetName": "Balans",
                "items": [
                    {"checkId": "BAL-001", "checkText": "Fixed assets are presented separately.",
                     "category": "Vaste activa", "wettelijkeBasis": "Art. 2:365 BW"},
                    {"checkId": "BAL-002", "checkText": "Equity is presented separately."},
                ],
            },
            {
                "sheetName": "Winst-en-verliesrekening",
                "items": [
                    {"checkId": "WV-001", "checkText": "Net turnover is disclosed."},
                ],
            },
        ],
    }
    path = tmp_path / "checklist.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def checklist_workbook(tmp_path):
    path = tmp_path / "checklist.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame({
            "Check ID": ["BAL-001", "BAL-002", "BAL-003"],
            "Check Text": ["Fixed assets are presented.", "Equity is presented.", "Only for small entities."],
            "Category": ["Vaste activa", None, "Overig"],
            "Type": ["i+d", "I + D", "kl"],
        }).to_excel(writer, sheet_name="Balans", index=False)
        pd.DataFrame({
            "Check ID": ["TOE-001"],
            "Check Text": ["Micro entity exemption applied."],
            "Type": ["micro"],
        }).to_excel(writer, sheet_name="Toelichting", index=False)
        pd.DataFrame({
            "Check ID": ["WV-001"],
            "Check Text": ["Net turnover is disclosed."],
            "Type": ["i+d"],
        }).to_excel(writer, sheet_name="Winst-en-verliesrekening", index=False)
    return path


class TestLoadJson:

    def test_sheets_and_items(self, checklist_json):
        sheets = ChecklistParser().load_json(str(checklist_json))

        assert [s.sheet_name for s in sheets] == ["Balans", "Winst-en-verliesrekening"]
        first = sheets[0].items[0]
        assert first.id == "Balans:1"
        assert first.check_id == "BAL-001"
        assert first.category == "Vaste activa"
        assert first.legal_basis == "Art. 2:365 BW"
        assert first.applicable_types == ["i+d"]
        assert sheets[0].items[1].category is None

    def test_order_keys(self, checklist_json):
        sheets = ChecklistParser().load_json(str(checklist_json))

        assert [item.order for item in sheets[0].items] == [1, 2]
        assert [item.order for item in sheets[1].items] == [101]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ChecklistParser().load_json(str(tmp_path / "missing.json"))


class TestParseExcel:

    def test_rows_filtered_by_type(self, checklist_workbook):
        sheets = ChecklistParser().parse_excel(str(checklist_workbook))

        balans = sheets[0]
        assert balans.sheet_name == "Balans"
        assert [item.check_id for item in balans.items] == ["BAL-001", "BAL-002"]
        assert balans.items[0].category == "Vaste activa"
        assert balans.items[1].category is None

    def test_sheets_without_matching_rows_are_skipped(self, checklist_workbook):
        sheets = ChecklistParser().parse_excel(str(checklist_workbook))

        assert [s.sheet_name for s in sheets] == ["Balans", "Winst-en-verliesrekening"]
        assert sheets[1].items[0].order == 101

    def test_other_applicable_type(self, checklist_workbook):
        sheets = ChecklistParser(applicable_type="kl").parse_excel(str(checklist_workbook))

        assert [s.sheet_name for s in sheets] == ["Balans"]
        assert [item.check_id for item in sheets[0].items] == ["BAL-003"]
        assert sheets[0].items[0].applicable_types == ["kl"]


class TestGetSheet:

    def test_case_insensitive_lookup(self, checklist_json):
        sheets = ChecklistParser().load_json(str(checklist_json))
        assert get_sheet(sheets, "balans").sheet_name == "Balans"

    def test_first_sheet_by_default(self, checklist_json):
        sheets = ChecklistParser().load_json(str(checklist_json))
        assert get_sheet(sheets).sheet_name == "Balans"

    def test_unknown_sheet(self, checklist_json):
        sheets = ChecklistParser().load_json(str(checklist_json))
        with pytest.raises(KeyError):
            get_sheet(sheets, "Kasstroomoverzicht")

    def test_empty_checklist(self):
        with pytest.raises(ValueError):
            get_sheet([])


@pytest.mark.asyncio
async def test_seed_checklist_skips_existing_sheets(store, checklist_json):
    sheets = ChecklistParser().load_json(str(checklist_json))

    assert await seed_checklist(store, sheets) == 3
    assert await seed_checklist(store, sheets) == 0

    assert await store.list_sheets() == ["Balans", "Winst-en-verliesrekening"]
    items = await store.list_items("Balans", "i+d")
    assert [item.check_id for item in items] == ["BAL-001", "BAL-002"]


@pytest.mark.asyncio
async def test_items_sharing_a_check_id_stay_distinct(store):
    sheets = ChecklistParser().parse_sheets([{
        "sheetName": "Balans",
        "items": [
            {"checkId": "1", "checkText": "Fixed assets are presented separately."},
            {"checkId": "1", "checkText": "Equity is presented separately."},
        ],
    }])

    assert [item.id for item in sheets[0].items] == ["Balans:1", "Balans:2"]
    assert await seed_checklist(store, sheets) == 2

    items = await store.list_items("Balans", "i+d")
    assert [item.check_text for item in items] == [
        "Fixed assets are presented separately.",
        "Equity is presented separately.",
    ]
    assert {item.check_id for item in items} == {"1"}


def test_numeric_check_ids_from_json():
    sheets = ChecklistParser().parse_sheets([{
        "sheetName": "Balans",
        "items": [{"checkId": 7, "checkText": "Equity is presented separately."}],
    }])

    assert sheets[0].items[0].check_id == "7"


def test_numeric_check_ids_from_workbook(tmp_path):
    path = tmp_path / "numbered.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame({
            "Nr": [1, 2, None],
            "Criterium": ["Fixed assets are presented.", "Equity is presented.", "Row without a number."],
            "Type": ["i+d", "i+d", "i+d"],
        }).to_excel(writer, sheet_name="Balans", index=False)

    sheets = ChecklistParser().parse_excel(str(path))

    assert [item.check_id for item in sheets[0].items] == ["1", "2"]
