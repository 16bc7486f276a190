"""
Pydantic schemas for the structured output of the extraction service.

Field names follow the service's camelCase JSON; snake_case names are
accepted too.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..engine.models import LineItem, MISSING_ZERO


class ExtractedTable(BaseModel):
    """A generic table found in the document."""
    headers: list[str]
    rows: list[list[str]] = Field(default_factory=list)
    description: Optional[str] = None

    @field_validator('rows', mode='before')
    @classmethod
    def _cells_as_text(cls, value):
        # the model sometimes returns bare numbers or nulls for cells
        if not isinstance(value, list):
            return value
        return [
            ["" if cell is None else str(cell) for cell in row] if isinstance(row, list) else row
            for row in value
        ]

    def to_records(self) -> list[dict[str, str]]:
        """Rows as header -> cell dicts. Short rows are padded with ""."""
        records = []
        for row in self.rows:
            padded = list(row) + [""] * (len(self.headers) - len(row))
            records.append(dict(zip(self.headers, padded)))
        return records


class ExtractedList(BaseModel):
    title: Optional[str] = None
    items: list[str] = Field(default_factory=list)


class BOQItem(BaseModel):
    """One BOQ line as returned by the service."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    item_code: Optional[str] = Field(default=None, alias="itemCode")
    description: str
    quantity: float
    unit: str
    rate: Optional[float] = None
    amount: Optional[float] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    def to_line_item(self, missing_policy: str = MISSING_ZERO) -> LineItem:
        return LineItem.from_dict(
            {
                'item_code': self.item_code,
                'description': self.description,
                'quantity': self.quantity,
                'unit': self.unit,
                'rate': self.rate,
                'amount': self.amount,
                'image_ref': self.image_url,
            },
            missing_policy=missing_policy,
        )


class BOQSection(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    items: list[BOQItem] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Everything the service found in one document."""
    tables: list[ExtractedTable] = Field(default_factory=list)
    lists: list[ExtractedList] = Field(default_factory=list)
    prices: list[str] = Field(default_factory=list)
    boqs: list[BOQSection] = Field(default_factory=list)

    @field_validator('tables', 'lists', 'prices', 'boqs', mode='before')
    @classmethod
    def _null_as_empty(cls, value):
        return [] if value is None else value

    def has_content(self) -> bool:
        return bool(self.boqs) or bool(self.tables)

    def line_items(self, missing_policy: str = MISSING_ZERO) -> list[LineItem]:
        """All BOQ items across every section, in document order."""
        return [
            item.to_line_item(missing_policy)
            for section in self.boqs
            for item in section.items
        ]


class DetectedTables(BaseModel):
    """Output of the table-detection flow: each table is a list of row dicts."""
    tables: list[list[dict[str, Any]]] = Field(default_factory=list)
