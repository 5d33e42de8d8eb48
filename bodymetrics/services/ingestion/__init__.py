"""Ingestion pipeline.

normalize -> validate -> collapse repeats -> detect duplicates, plus the vision
extraction front end that feeds it.
"""

from bodymetrics.services.ingestion.duplicate_detector import DuplicateDetector
from bodymetrics.services.ingestion.ingestion_service import IngestionService
from bodymetrics.services.ingestion.validator import validate
from bodymetrics.services.ingestion.vision_extractor import VisionExtractor

__all__ = [
    "DuplicateDetector",
    "IngestionService",
    "VisionExtractor",
    "validate",
]
