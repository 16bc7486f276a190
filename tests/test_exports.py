"""
Export adapter tests.

Adapters format numbers produced by the pricing engine; they never
reprice. These tests check the row set, CSV layout, workbook contents
and that a PDF is produced with and without item images.
"""
import csv
import io
import os
import sys

import pandas as pd
import pytest
from PIL import Image as PILImage

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from boq_tool.config.settings import Letterhead
from boq_tool.engine import AdjustmentParameters, LineItem, ProjectDetails, price
from boq_tool.export import (
    COLUMNS,
    build_rows,
    build_summary_rows,
    export_boq_excel,
    export_boq_pdf,
    export_csv,
    export_tables_excel,
)
from boq_tool.export.excel_export import sanitize_file_name
from boq_tool.export.tabular import format_quantity, vat_label
from boq_tool.services.data_uri import encode_data_uri


def _png_data_uri() -> str:
    buffer = io.BytesIO()
    PILImage.new("RGB", (40, 20), color=(200, 30, 30)).save(buffer, format="PNG")
    return encode_data_uri(buffer.getvalue(), "image/png")


@pytest.fixture
def result():
    items = [
        LineItem(item_code="1.1", description="Excavation, bulk", quantity=10, unit="m3", rate=5, amount=50),
        LineItem(item_code=None, description='Concrete "C30"', quantity=2, unit="m3", rate=100, amount=200),
    ]
    return price(items, AdjustmentParameters(net_margin_pct=10, vat_rate=0.05))


@pytest.fixture
def project():
    return ProjectDetails(
        project_name="Tower A",
        contact_person="R. Khan",
        company_name="Acme Contracting",
        contact_number="+968 1234 5678",
    )


def test_build_rows_columns_and_formatting(result):
    rows = build_rows(result)

    assert [list(r.keys()) for r in rows] == [COLUMNS, COLUMNS]
    assert rows[0]['serial'] == 1
    assert rows[1]['serial'] == 2
    assert rows[0]['rate'] == "5.50"
    assert rows[0]['amount'] == "55.00"
    assert rows[1]['rate'] == "110.00"
    assert rows[1]['amount'] == "220.00"
    assert rows[0]['quantity'] == "10"
    assert rows[1]['itemCode'] == ""


def test_summary_rows(result):
    assert build_summary_rows(result) == [
        ("Subtotal", "275.00"),
        ("VAT (5%)", "13.75"),
        ("Grand Total", "288.75"),
    ]


@pytest.mark.parametrize("rate, label", [
    (0.05, "VAT (5%)"),
    (0.15, "VAT (15%)"),
    (0.075, "VAT (7.5%)"),
    (0, "VAT (0%)"),
])
def test_vat_label(rate, label):
    assert vat_label(rate) == label


def test_format_quantity():
    assert format_quantity(10.0) == "10"
    assert format_quantity(12.5) == "12.5"
    assert format_quantity(-3.0) == "-3"


def test_export_csv_layout(result, project):
    text = export_csv(result, project)
    rows = list(csv.reader(io.StringIO(text)))

    assert rows[0] == ["Project Name", "Tower A"]
    assert rows[3] == ["Contact Number", "+968 1234 5678"]
    assert rows[4] == []
    assert rows[5] == ["Sn", "Item", "Description", "Quantity", "Unit", "Rate", "Amount"]
    assert rows[6] == ["1", "1.1", "Excavation, bulk", "10", "m3", "5.50", "55.00"]
    assert rows[7] == ["2", "", 'Concrete "C30"', "2", "m3", "110.00", "220.00"]
    assert rows[8] == []
    assert rows[9] == ["", "", "", "", "", "Subtotal", "275.00"]
    assert rows[10] == ["", "", "", "", "", "VAT (5%)", "13.75"]
    assert rows[11] == ["", "", "", "", "", "Grand Total", "288.75"]


def test_export_csv_quotes_commas_and_quotes(result):
    text = export_csv(result)
    assert '"Excavation, bulk"' in text
    assert '"Concrete ""C30"""' in text


def test_export_boq_excel(result, project):
    content = export_boq_excel(result, project)

    boq = pd.read_excel(io.BytesIO(content), sheet_name="BOQ", header=None, dtype=str)
    assert list(boq.iloc[0]) == ["Sn", "Item", "Description", "Quantity", "Unit", "Rate", "Amount"]
    assert boq.iloc[1, 5] == "5.50"
    assert boq.iloc[2, 6] == "220.00"
    assert boq.iloc[4, 5] == "Subtotal"
    assert boq.iloc[6, 6] == "288.75"

    details = pd.read_excel(io.BytesIO(content), sheet_name="Project", dtype=str)
    assert details.loc[0, "Value"] == "Tower A"


def test_export_tables_excel_round_trip():
    records = [{"Item": "A", "Qty": "3"}, {"Item": "B", "Qty": "5"}]
    content, file_name = export_tables_excel(records, "Site Plan (rev 2).pdf")

    assert file_name == "site_plan__rev_2_.xlsx"
    sheet = pd.read_excel(io.BytesIO(content), sheet_name="Sheet1", dtype=str)
    assert list(sheet.columns) == ["Item", "Qty"]
    assert sheet["Item"].tolist() == ["A", "B"]


def test_export_tables_excel_empty():
    with pytest.raises(ValueError, match="No data to export"):
        export_tables_excel([], "empty")


def test_sanitize_file_name():
    assert sanitize_file_name("BOQ-Final.PDF") == "boq_final.xlsx"
    assert sanitize_file_name("report") == "report.xlsx"


def test_export_boq_pdf(result, project):
    letterhead = Letterhead(
        company_name="Acme & Sons",
        signatory_name="Sales Desk",
        contact_lines=("Phone: 000",),
        links=("www.example.com",),
    )
    content = export_boq_pdf(result, project, letterhead)
    assert content.startswith(b"%PDF")
    assert len(content) > 1000


def test_export_boq_pdf_with_images(project):
    inline = _png_data_uri()
    items = [
        LineItem(description="Inline image", quantity=1, unit="nos", rate=10, amount=10, image_ref=inline),
        LineItem(description="Resolved remote image", quantity=1, unit="nos", rate=10, amount=10,
                 image_ref="https://img.example/a.png"),
        LineItem(description="Unresolved remote image", quantity=1, unit="nos", rate=10, amount=10,
                 image_ref="https://img.example/missing.png"),
        LineItem(description="Broken inline image", quantity=1, unit="nos", rate=10, amount=10,
                 image_ref="data:image/png;base64,bm90IGFuIGltYWdl"),
    ]
    result = price(items, AdjustmentParameters.identity(vat_rate=0.15))

    content = export_boq_pdf(result, project, images={"https://img.example/a.png": inline})
    assert content.startswith(b"%PDF")


def test_export_empty_boq(project):
    result = price([], AdjustmentParameters.identity(vat_rate=0.05))

    assert export_csv(result, project).count("\n") == 10
    assert export_boq_pdf(result, project).startswith(b"%PDF")
    boq = pd.read_excel(io.BytesIO(export_boq_excel(result, project)), sheet_name="BOQ", header=None, dtype=str)
    assert list(boq.iloc[0]) == ["Sn", "Item", "Description", "Quantity", "Unit", "Rate", "Amount"]
