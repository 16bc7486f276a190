"""
Extraction Service - client for the hosted document-extraction model.

Sends an uploaded document (as a data URI) to Gemini and validates the
structured JSON it returns. The model is treated as a black box: callers
get either a validated result or an ExtractionError.
"""
import json
import logging
from typing import Optional

import google.generativeai as genai
from pydantic import ValidationError

from ..config.settings import get_settings, Settings
from .data_uri import decode_data_uri
from .schemas import ExtractionResult, DetectedTables

logger = logging.getLogger("boq-tool.extraction")


EXTRACT_INSTRUCTION = """Extract the structured content of the attached document as JSON with the keys
"tables", "lists", "prices" and "boqs".

- tables: [{"headers": [...], "rows": [[...]], "description": "..."}]
- lists: [{"title": "...", "items": [...]}]
- prices: individual prices mentioned, with currency symbols
- boqs: [{"title": "...", "description": "...", "items": [
    {"itemCode": "...", "description": "...", "quantity": 0, "unit": "...",
     "rate": 0, "amount": 0, "imageUrl": "..."}]}]

Return every Bill of Quantities line exactly once, in document order, including
lines that look like duplicates. Use null for a rate or amount the document does not state."""

DETECT_TABLES_INSTRUCTION = """Find every table in the attached document and return JSON of the form
{"tables": [[{"<column header>": "<cell>", ...}, ...], ...]}: one array of row objects per table,
keyed by the table's column headers. Include all rows and columns."""


class ExtractionError(RuntimeError):
    """Raised when the extraction service fails or returns unusable output."""


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json"):]
    elif text.startswith("```"):
        text = text[len("```"):]
    if text.endswith("```"):
        text = text[:-len("```")]
    return text.strip()


def parse_json_response(text: Optional[str]) -> object:
    """Decode the model's JSON reply, tolerating a markdown code fence."""
    if not text or not text.strip():
        raise ExtractionError("Failed to extract data from the document: empty response.")
    try:
        return json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Failed to extract data from the document: invalid JSON ({e.msg}).") from e


class ExtractionService:
    """
    Wraps the Gemini model used to read BOQs and tables out of documents.

    A model object may be injected (anything with an async
    generate_content_async(contents) returning an object with .text);
    otherwise one is created lazily from settings.
    """

    def __init__(self, settings: Optional[Settings] = None, model=None):
        self.settings = settings or get_settings()
        self._model = model

    @property
    def configured(self) -> bool:
        return self._model is not None or bool(self.settings.google_api_key)

    def _get_model(self):
        if self._model is None:
            if not self.settings.google_api_key:
                raise ExtractionError("GOOGLE_API_KEY is not set; the extraction service is unavailable.")
            genai.configure(api_key=self.settings.google_api_key)
            self._model = genai.GenerativeModel(
                model_name=self.settings.gemini_model,
                generation_config={"response_mime_type": "application/json"},
            )
        return self._model

    async def _generate(self, instruction: str, data_uri: str) -> str:
        mime_type, payload = decode_data_uri(data_uri)
        model = self._get_model()

        logger.info(f"Sending {len(payload)} bytes ({mime_type}) to {self.settings.gemini_model}")
        try:
            response = await model.generate_content_async(
                [instruction, {"mime_type": mime_type, "data": payload}]
            )
            # .text raises ValueError when the reply was blocked or has no parts
            return response.text
        except Exception as e:
            logger.error(f"Extraction service call failed: {type(e).__name__}: {e}")
            raise ExtractionError(f"Extraction service call failed: {e}") from e

    async def extract(self, data_uri: str) -> ExtractionResult:
        """
        Extract tables, lists, prices and BOQs from a document.

        Raises:
            ValueError: data_uri is not a base64 data URI
            ExtractionError: the service failed or its output did not validate
        """
        raw = parse_json_response(await self._generate(EXTRACT_INSTRUCTION, data_uri))
        if not isinstance(raw, dict):
            raise ExtractionError("Failed to extract data from the document: expected a JSON object.")
        try:
            result = ExtractionResult.model_validate(raw)
        except ValidationError as e:
            raise ExtractionError(f"Extraction output did not match the expected schema: {e}") from e

        item_count = sum(len(section.items) for section in result.boqs)
        logger.info(f"Extracted {len(result.boqs)} BOQ(s) with {item_count} items and {len(result.tables)} table(s)")
        return result

    async def detect_tables(self, data_uri: str) -> list[list[dict]]:
        """Detect every table in a document, each as a list of row dicts."""
        raw = parse_json_response(await self._generate(DETECT_TABLES_INSTRUCTION, data_uri))
        # a bare list of tables is accepted as well as {"tables": [...]}
        if isinstance(raw, list):
            raw = {"tables": raw}
        if not isinstance(raw, dict):
            raise ExtractionError("Extracted data is not in the expected array format.")
        try:
            detected = DetectedTables.model_validate(raw)
        except ValidationError as e:
            raise ExtractionError("Extracted data is not in the expected array format.") from e

        logger.info(f"Detected {len(detected.tables)} table(s)")
        return detected.tables
