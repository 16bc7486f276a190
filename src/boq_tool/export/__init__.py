"""Export subpackage - renders pricing results as rows, CSV, Excel and PDF."""
from .tabular import COLUMNS, build_rows, build_summary_rows
from .csv_export import export_csv
from .excel_export import export_boq_excel, export_tables_excel
from .pdf_export import export_boq_pdf

__all__ = [
    'COLUMNS', 'build_rows', 'build_summary_rows',
    'export_csv', 'export_boq_excel', 'export_tables_excel', 'export_boq_pdf',
]
