"""Health analysis: gate, CSV projection, generation and expansion."""

from bodymetrics.services.analysis.analysis_service import AnalysisService
from bodymetrics.services.analysis.gate import AnalysisGate
from bodymetrics.services.analysis.generator import AnalysisGenerator

__all__ = ["AnalysisService", "AnalysisGate", "AnalysisGenerator"]
