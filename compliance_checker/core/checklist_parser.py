"""
Checklist Parser for compliance criteria.

This module loads checklist sheets from the JSON checklist export or
from an Excel workbook and seeds them into a checklist store.
"""

import json
import logging
import re
from pathlib import Path
from typing import List, Dict, Any, Optional, Sequence

import pandas as pd

from ..models.checklist_item import ChecklistItem, ChecklistSheet
from ..storage.base import ChecklistStore

logger = logging.getLogger(__name__)

DEFAULT_APPLICABLE_TYPE = "i+d"
ORDER_STRIDE = 100


def item_id(sheet_name: str, order: int) -> str:
    """Positional item id; check ids are not unique within a sheet."""
    return f"{sheet_name}:{order}"


def format_check_id(value: Any) -> Optional[str]:
    """Render a check id cell as text, dropping the decimal part of integral numbers."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    value = str(value).strip()
    return value or None


class ChecklistParser:
    """
    Parser for compliance checklists.

    Items receive an order key of ``sheet_index * 100 + item_index + 1``
    so that sheets keep their position when combined.
    """

    def __init__(self, applicable_type: str = DEFAULT_APPLICABLE_TYPE):
        """Initialize the checklist parser."""
        self.applicable_type = applicable_type
        self.logger = logging.getLogger(__name__)

        # Column names accepted in workbooks, by item field
        self.column_mapping = {
            "check_id": ["checkid", "check id", "id", "nr", "nummer"],
            "check_text": ["checktext", "check text", "criterium", "criterion", "omschrijving"],
            "category": ["category", "categorie", "rubriek"],
            "legal_basis": ["wettelijkebasis", "wettelijke basis", "legal basis"],
            "applicable_types": ["applicabletypes", "applicable types", "type", "soort"],
        }

    def load_json(self, file_path: str) -> List[ChecklistSheet]:
        """
        Load checklist sheets from a JSON checklist export.

        Args:
            file_path: Path to a file with a top-level ``sheets`` list

        Returns:
            Checklist sheets in file order
        """
        self.logger.info(f"Loading checklist file: {file_path}")
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Checklist file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return self.parse_sheets(data.get("sheets", []))

    def parse_sheets(self, raw_sheets: Sequence[Dict[str, Any]]) -> List[ChecklistSheet]:
        """Build checklist sheets from decoded JSON sheet entries."""
        sheets = []
        for sheet_index, raw_sheet in enumerate(raw_sheets):
            sheet_name = raw_sheet["sheetName"]
            items = []
            for item_index, raw_item in enumerate(raw_sheet.get("items", [])):
                order = sheet_index * ORDER_STRIDE + item_index + 1
                items.append(ChecklistItem(
                    id=item_id(sheet_name, order),
                    sheet_name=sheet_name,
                    check_id=format_check_id(raw_item["checkId"]),
                    check_text=raw_item["checkText"],
                    category=raw_item.get("category"),
                    legal_basis=raw_item.get("wettelijkeBasis"),
                    applicable_types=[self.applicable_type],
                    order=order,
                ))
            sheets.append(ChecklistSheet(sheet_name=sheet_name, items=items))

        self.logger.info(f"Loaded {len(sheets)} sheets with {sum(s.get_item_count() for s in sheets)} items")
        return sheets

    def parse_excel(self, file_path: str) -> List[ChecklistSheet]:
        """
        Parse checklist sheets from an Excel workbook.

        Only rows whose applicability column matches the parser's
        applicable type are kept; sheets without such rows are skipped.
        """
        self.logger.info(f"Parsing checklist workbook: {file_path}")
        all_sheets = pd.read_excel(file_path, sheet_name=None)

        sheets = []
        for sheet_name, df in all_sheets.items():
            items = self._parse_sheet(df, str(sheet_name), len(sheets))
            if items:
                sheets.append(ChecklistSheet(sheet_name=str(sheet_name), items=items))
            else:
                self.logger.debug(f"No {self.applicable_type} items in sheet {sheet_name}")

        self.logger.info(f"Parsed {len(sheets)} sheets from workbook")
        return sheets

    def _parse_sheet(self, df: pd.DataFrame, sheet_name: str, sheet_index: int) -> List[ChecklistItem]:
        columns = self._resolve_columns(df)
        if "check_id" not in columns or "check_text" not in columns or "applicable_types" not in columns:
            return []

        items = []
        for _, row in df.iterrows():
            types = self._cell(row, columns["applicable_types"])
            if self._normalize_type(types) != self._normalize_type(self.applicable_type):
                continue

            check_id = format_check_id(row.get(columns["check_id"]))
            check_text = self._cell(row, columns["check_text"])
            if not check_id or not check_text:
                continue

            order = sheet_index * ORDER_STRIDE + len(items) + 1
            items.append(ChecklistItem(
                id=item_id(sheet_name, order),
                sheet_name=sheet_name,
                check_id=check_id,
                check_text=check_text,
                category=self._cell(row, columns.get("category")),
                legal_basis=self._cell(row, columns.get("legal_basis")),
                applicable_types=[self.applicable_type],
                order=order,
            ))

        return items

    def _resolve_columns(self, df: pd.DataFrame) -> Dict[str, str]:
        resolved = {}
        for column in df.columns:
            key = str(column).strip().lower()
            for field, aliases in self.column_mapping.items():
                if key in aliases and field not in resolved:
                    resolved[field] = column
        return resolved

    @staticmethod
    def _cell(row: pd.Series, column: Optional[str]) -> Optional[str]:
        if column is None:
            return None
        value = row.get(column)
        if value is None or pd.isna(value):
            return None
        value = str(value).strip()
        return value or None

    @staticmethod
    def _normalize_type(value: Optional[str]) -> str:
        return re.sub(r"\s+", "", value or "").lower()


def get_sheet(sheets: Sequence[ChecklistSheet], sheet_name: Optional[str] = None) -> ChecklistSheet:
    """Find a sheet by case-insensitive name; the first sheet when no name is given."""
    if not sheets:
        raise ValueError("Checklist has no sheets")

    if not sheet_name:
        return sheets[0]

    for sheet in sheets:
        if sheet.sheet_name.lower() == sheet_name.lower():
            return sheet

    raise KeyError(f"Checklist sheet not found: {sheet_name}")


async def seed_checklist(store: ChecklistStore, sheets: Sequence[ChecklistSheet]) -> int:
    """Insert the items of every sheet the store does not contain yet."""
    seeded = 0
    for sheet in sheets:
        if await store.count_items(sheet.sheet_name) > 0:
            continue
        seeded += await store.add_items(sheet.items)
        logger.info(f"Seeded {len(sheet.items)} items for sheet {sheet.sheet_name}")
    return seeded
