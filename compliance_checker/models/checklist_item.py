"""
Data models for checklist criteria.

This module defines the structures used to represent the textual
compliance criteria a document is checked against.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ChecklistItem(BaseModel):
    """Represents a single compliance criterion of a checklist sheet."""

    id: str = Field(..., description="Unique identifier for the item")
    sheet_name: str = Field(..., description="Checklist sheet the item belongs to")
    check_id: str = Field(..., description="Checklist reference, e.g. BAL-001")
    check_text: str = Field(..., description="Text of the criterion")
    category: Optional[str] = Field(None, description="Category within the sheet")
    legal_basis: Optional[str] = Field(None, description="Statutory basis of the criterion")
    applicable_types: List[str] = Field(default_factory=list, description="Report types the criterion applies to")
    order: int = Field(0, description="Ordering key within the checklist")

    def applies_to(self, applicable_type: Optional[str]) -> bool:
        """Check whether this item applies to a report type.

        Items without declared types apply to every type.
        """
        if not applicable_type or not self.applicable_types:
            return True
        return applicable_type in self.applicable_types


class ChecklistSheet(BaseModel):
    """A named group of checklist items."""

    sheet_name: str = Field(..., description="Name of the sheet")
    items: List[ChecklistItem] = Field(default_factory=list, description="Items in checklist order")

    def get_item_count(self) -> int:
        return len(self.items)
