"""Shared API state - settings and the extraction service dependency."""
from functools import lru_cache

from ..config.settings import get_settings
from ..services.extraction_service import ExtractionService

settings = get_settings()


@lru_cache(maxsize=1)
def get_extraction_service() -> ExtractionService:
    """FastAPI dependency; overridden in tests."""
    return ExtractionService(settings)
