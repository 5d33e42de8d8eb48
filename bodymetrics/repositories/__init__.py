"""Async SQLAlchemy repositories."""

from bodymetrics.repositories.analysis_repository import AnalysisRepository
from bodymetrics.repositories.base_repository import BaseRepository
from bodymetrics.repositories.catalog_repository import CatalogRepository
from bodymetrics.repositories.measurement_repository import MeasurementRepository
from bodymetrics.repositories.profile_repository import ProfileRepository

__all__ = [
    "AnalysisRepository",
    "BaseRepository",
    "CatalogRepository",
    "MeasurementRepository",
    "ProfileRepository",
]
