"""Services subpackage - extraction client, data URIs and image fetching."""
from .extraction_service import ExtractionService, ExtractionError
from .schemas import ExtractionResult, ExtractedTable, BOQSection, BOQItem

__all__ = [
    'ExtractionService', 'ExtractionError',
    'ExtractionResult', 'ExtractedTable', 'BOQSection', 'BOQItem',
]
