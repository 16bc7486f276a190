"""
PDF export - branded Bill of Quantities quotation.

Layout (A4):
  - Letterhead company name
  - "Bill of Quantities" title and project details
  - Striped item table with an image column
  - Right-aligned Subtotal / VAT / Grand Total
  - Sign-off block, links and disclaimer from the letterhead settings
"""
import io
import logging
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, Image

from ..config.settings import Letterhead
from ..engine.models import PricingResult, PricedLineItem, ProjectDetails
from ..services.data_uri import decode_data_uri, is_data_uri
from .tabular import build_rows, build_summary_rows

logger = logging.getLogger("boq-tool.export")

MARGIN = 14 * mm
IMAGE_BOX = 20 * mm
HEADER_GREY = colors.Color(75 / 255, 85 / 255, 99 / 255)
LINK_BLUE = "#433AB7"

TABLE_COLUMNS = ["Sn", "Image", "Item", "Description", "Quantity", "Unit", "Rate", "Amount"]
COLUMN_WIDTHS = [8 * mm, 22 * mm, 20 * mm, 62 * mm, 18 * mm, 14 * mm, 19 * mm, 19 * mm]


def _styles() -> dict:
    base = getSampleStyleSheet()
    return {
        'brand': ParagraphStyle('Brand', parent=base['Title'], fontSize=20, leading=24, alignment=0),
        'title': ParagraphStyle('BOQTitle', parent=base['Heading2'], fontSize=16, leading=20),
        'body': ParagraphStyle('Body', parent=base['Normal'], fontSize=10, leading=13),
        'detail': ParagraphStyle('Detail', parent=base['Normal'], fontSize=12, leading=16),
        'cell': ParagraphStyle('Cell', parent=base['Normal'], fontSize=8, leading=10),
        'total': ParagraphStyle('Total', parent=base['Normal'], fontSize=10, leading=14, alignment=TA_RIGHT),
        'grand': ParagraphStyle('Grand', parent=base['Normal'], fontName='Helvetica-Bold',
                                fontSize=12, leading=16, alignment=TA_RIGHT),
        'disclaimer': ParagraphStyle('Disclaimer', parent=base['Italic'], fontSize=8, leading=10),
    }


def _image_flowable(item: PricedLineItem, images: dict[str, str]):
    """Scaled image for an item, or None when there is nothing usable."""
    ref = item.image_ref
    if not ref:
        return None
    data_uri = ref if is_data_uri(ref) else images.get(ref)
    if not data_uri:
        return None

    try:
        _, payload = decode_data_uri(data_uri)
        width, height = ImageReader(io.BytesIO(payload)).getSize()
        scale = min(IMAGE_BOX / width, IMAGE_BOX / height)
        return Image(io.BytesIO(payload), width=width * scale, height=height * scale)
    except Exception as e:
        logger.warning(f"Failed to add image for item {item.item_code or item.description!r}: {e}")
        return None


def _item_table(result: PricingResult, images: dict[str, str], styles: dict) -> Table:
    body = [TABLE_COLUMNS]
    for row, item in zip(build_rows(result), result.items):
        image = _image_flowable(item, images)
        body.append([
            str(row['serial']),
            image if image is not None else 'No image',
            row['itemCode'] or '-',
            Paragraph(escape(row['description']), styles['cell']),
            row['quantity'],
            row['unit'],
            row['rate'],
            row['amount'],
        ])

    table = Table(body, colWidths=COLUMN_WIDTHS, repeatRows=1)
    commands = [
        ('BACKGROUND', (0, 0), (-1, 0), HEADER_GREY),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('ALIGN', (4, 1), (4, -1), 'RIGHT'),
        ('ALIGN', (6, 1), (7, -1), 'RIGHT'),
    ]
    # striped rows
    for index in range(1, len(body)):
        if index % 2 == 0:
            commands.append(('BACKGROUND', (0, index), (-1, index), colors.whitesmoke))
    table.setStyle(TableStyle(commands))
    return table


def _sign_off(letterhead: Letterhead, styles: dict) -> list:
    story = [Paragraph("<b>Regards</b>", styles['body'])]
    for line in (letterhead.signatory_name, letterhead.signatory_title, *letterhead.address_lines):
        if line:
            story.append(Paragraph(escape(line), styles['body']))
    story.append(Paragraph(f"<b>{escape(letterhead.company_name)}</b>", styles['body']))
    story.append(Spacer(1, 4 * mm))
    for line in letterhead.contact_lines:
        story.append(Paragraph(escape(line), styles['body']))
    if letterhead.links:
        links = " | ".join(
            f'<link href="{escape(url if url.startswith("http") else "http://" + url)}">'
            f'<font color="{LINK_BLUE}">{escape(url)}</font></link>'
            for url in letterhead.links
        )
        story.append(Paragraph(links, styles['body']))
    if letterhead.disclaimer:
        story.append(Spacer(1, 4 * mm))
        story.append(Paragraph(escape(letterhead.disclaimer), styles['disclaimer']))
    return story


def export_boq_pdf(
    result: PricingResult,
    project: ProjectDetails = None,
    letterhead: Letterhead = None,
    images: Optional[dict[str, str]] = None,
) -> bytes:
    """
    Render a priced BOQ as a PDF quotation.

    Args:
        result: Output of the pricing engine
        project: Project details for the header block
        letterhead: Branding and sign-off text
        images: {url: data_uri} for remote item images (see resolve_image_refs)

    Returns:
        PDF document bytes
    """
    project = project or ProjectDetails()
    letterhead = letterhead or Letterhead()
    styles = _styles()

    story = [
        Paragraph(escape(letterhead.company_name), styles['brand']),
        Spacer(1, 8 * mm),
        Paragraph("Bill of Quantities", styles['title']),
    ]
    for label, value in project.as_rows():
        story.append(Paragraph(f"{label}: {escape(value)}", styles['detail']))
    story.append(Spacer(1, 5 * mm))

    story.append(_item_table(result, images or {}, styles))
    story.append(Spacer(1, 5 * mm))

    summary = build_summary_rows(result)
    for label, value in summary[:-1]:
        story.append(Paragraph(f"{escape(label)}: {value}", styles['total']))
    grand_label, grand_value = summary[-1]
    story.append(Paragraph(f"{grand_label}: {grand_value}", styles['grand']))
    story.append(Spacer(1, 8 * mm))

    story.extend(_sign_off(letterhead, styles))

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=f"{project.project_name or 'Final'} BOQ",
    )
    doc.build(story)

    logger.info(f"BOQ PDF generated with {len(result.items)} rows")
    return buffer.getvalue()
