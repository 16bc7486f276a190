"""
Excel export - priced BOQs and edited generic tables.

Workbooks are built with pandas on the openpyxl engine and returned as
bytes so the API and the UI can stream them without touching disk.
"""
import io
import logging
import re

import pandas as pd

from ..engine.models import PricingResult, ProjectDetails
from .tabular import COLUMNS, COLUMN_LABELS, build_rows, build_summary_rows, labelled

logger = logging.getLogger("boq-tool.export")

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def sanitize_file_name(file_name: str) -> str:
    """
    "Site Plan (rev 2).pdf" -> "site_plan__rev_2_.xlsx"

    A trailing .pdf is dropped, every other non-alphanumeric character
    becomes "_" and the result is lowercased.
    """
    stem = file_name[:-4] if file_name.lower().endswith('.pdf') else file_name
    stem = re.sub(r'[^a-z0-9]', '_', stem, flags=re.IGNORECASE).lower()
    return f"{stem or 'export'}.xlsx"


def export_boq_excel(result: PricingResult, project: ProjectDetails = None) -> bytes:
    """Workbook with a BOQ sheet (items + totals) and a Project sheet."""
    project = project or ProjectDetails()
    rows = labelled(build_rows(result))
    items_df = pd.DataFrame(rows, columns=[COLUMN_LABELS[key] for key in COLUMNS])
    summary_df = pd.DataFrame(build_summary_rows(result))

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        items_df.to_excel(writer, sheet_name='BOQ', index=False)
        summary_df.to_excel(
            writer,
            sheet_name='BOQ',
            index=False,
            header=False,
            startrow=len(items_df) + 2,
            startcol=len(COLUMNS) - 2,
        )
        pd.DataFrame(project.as_rows(), columns=['Field', 'Value']).to_excel(
            writer, sheet_name='Project', index=False
        )

    logger.info(f"BOQ workbook generated with {len(rows)} rows")
    return buffer.getvalue()


def export_tables_excel(records: list[dict], file_name: str) -> tuple[bytes, str]:
    """
    Write edited table rows to a single-sheet workbook.

    Returns (workbook bytes, sanitized .xlsx file name).
    """
    if not records:
        raise ValueError("No data to export")

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        pd.DataFrame(records).to_excel(writer, sheet_name='Sheet1', index=False)

    return buffer.getvalue(), sanitize_file_name(file_name)
