import logging
import math
from typing import Any, Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from boq_tool import __version__
from boq_tool.config.logging_config import setup_logging
from boq_tool.engine import (
    AdjustmentParameters,
    InvalidLineItemError,
    InvalidParametersError,
    LineItem,
    PricingResult,
    ProjectDetails,
    price,
)
from boq_tool.export import export_boq_excel, export_boq_pdf, export_csv, export_tables_excel
from boq_tool.export.excel_export import XLSX_MIME
from boq_tool.services.data_uri import encode_data_uri, guess_mime_type
from boq_tool.services.extraction_service import ExtractionError, ExtractionService
from boq_tool.services.image_service import resolve_image_refs
from boq_tool.api.state import settings, get_extraction_service

setup_logging(settings.log_level, settings.log_json)
logger = logging.getLogger("boq-tool.api")

NO_DATA_MESSAGE = "Could not extract any data. The format may be unsupported or the document empty."

app = FastAPI(
    title="BOQ Tool API",
    description="Backend API for BOQ extraction, re-pricing and export",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LineItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    item_code: Optional[str] = Field(default=None, alias="itemCode")
    description: str
    quantity: float
    unit: str
    rate: Optional[float] = None
    amount: Optional[float] = None
    image_ref: Optional[str] = Field(default=None, alias="imageRef")


class AdjustmentIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    net_margin_pct: float = 0.0
    freight_pct: float = 0.0
    customs_pct: float = 0.0
    installation_pct: float = 0.0
    quantity_upscale: float = 0.0
    vat_rate: Optional[float] = None  # None -> configured rate


class ProjectIn(BaseModel):
    project_name: str = ""
    contact_person: str = ""
    company_name: str = ""
    contact_number: str = ""


class PriceRequest(BaseModel):
    items: list[LineItemIn]
    params: AdjustmentIn = Field(default_factory=AdjustmentIn)


class ExportRequest(PriceRequest):
    project: ProjectIn = Field(default_factory=ProjectIn)


class TableExportRequest(BaseModel):
    rows: list[dict[str, Any]]
    file_name: str = "table"


def _run_pricing(req: PriceRequest) -> PricingResult:
    """Validate the request at the model boundary, then price it."""
    try:
        items = [
            LineItem.from_dict(item.model_dump(), missing_policy=settings.missing_value_policy)
            for item in req.items
        ]
        values = req.params.model_dump()
        if values['vat_rate'] is None:
            values['vat_rate'] = settings.vat_rate
        params = AdjustmentParameters(**values)
    except (InvalidLineItemError, InvalidParametersError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    result = price(items, params)
    # finite inputs can still overflow; JSON responses cannot carry inf
    if not (math.isfinite(result.grand_total) and math.isfinite(result.subtotal_original)):
        raise HTTPException(status_code=422, detail="Totals overflow: quantities or rates are too large to price.")
    return result


async def _read_upload(file: UploadFile) -> str:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    mime_type = file.content_type or guess_mime_type(file.filename)
    return encode_data_uri(content, mime_type)


@app.get("/")
async def root():
    return {"status": "online", "message": "BOQ Tool API Active"}


@app.post("/extract")
async def extract_document(
    file: UploadFile = File(...),
    service: ExtractionService = Depends(get_extraction_service),
):
    data_uri = await _read_upload(file)
    try:
        result = await service.extract(data_uri)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExtractionError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if not result.has_content():
        raise HTTPException(status_code=422, detail=NO_DATA_MESSAGE)

    payload = result.model_dump(by_alias=True)
    payload["lineItems"] = jsonable_encoder(result.line_items(settings.missing_value_policy))
    return payload


@app.post("/tables/detect")
async def detect_tables(
    file: UploadFile = File(...),
    service: ExtractionService = Depends(get_extraction_service),
):
    data_uri = await _read_upload(file)
    try:
        tables = await service.detect_tables(data_uri)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExtractionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"tables": tables}


@app.post("/price")
async def price_boq(req: PriceRequest):
    # Use jsonable_encoder to handle the result dataclasses
    return jsonable_encoder(_run_pricing(req))


@app.post("/export/{fmt}")
def export_boq(fmt: str, req: ExportRequest):
    # sync endpoint: PDF export fetches remote images
    if fmt not in ("csv", "xlsx", "pdf"):
        raise HTTPException(status_code=404, detail=f"Unknown export format: {fmt}")

    result = _run_pricing(req)
    project = ProjectDetails(**req.project.model_dump())
    file_name = f"{project.file_stem()}.{fmt}"

    if fmt == "csv":
        content, media_type = export_csv(result, project).encode("utf-8"), "text/csv"
    elif fmt == "xlsx":
        content, media_type = export_boq_excel(result, project), XLSX_MIME
    else:
        images = resolve_image_refs(result.items, timeout=settings.image_timeout)
        content = export_boq_pdf(result, project, settings.letterhead, images)
        media_type = "application/pdf"

    logger.info(f"Exported {len(result.items)} items as {file_name}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@app.post("/tables/export")
async def export_table(req: TableExportRequest):
    try:
        content, file_name = export_tables_excel(req.rows, req.file_name)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return Response(
        content=content,
        media_type=XLSX_MIME,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@app.get("/system/status")
async def get_status(service: ExtractionService = Depends(get_extraction_service)):
    return {
        "engine_active": True,
        "vat_rate": settings.vat_rate,
        "missing_value_policy": settings.missing_value_policy,
        "extraction_model": settings.gemini_model,
        "extraction_configured": service.configured,
    }
