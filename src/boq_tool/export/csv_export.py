"""CSV export of a priced BOQ."""
import csv
import io

from ..engine.models import PricingResult, ProjectDetails
from .tabular import COLUMNS, COLUMN_LABELS, build_rows, build_summary_rows


def export_csv(result: PricingResult, project: ProjectDetails = None) -> str:
    """
    Render a priced BOQ as CSV text.

    Layout: project details, blank line, header + item rows, blank line,
    then the summary rows with the label and value in the last two columns.
    """
    project = project or ProjectDetails()
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')

    for label, value in project.as_rows():
        writer.writerow([label, value.strip()])
    writer.writerow([])

    writer.writerow([COLUMN_LABELS[key] for key in COLUMNS])
    for row in build_rows(result):
        writer.writerow([row[key] for key in COLUMNS])

    writer.writerow([])
    padding = [''] * (len(COLUMNS) - 2)
    for label, value in build_summary_rows(result):
        writer.writerow(padding + [label, value])

    return buffer.getvalue()
