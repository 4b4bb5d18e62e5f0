"""
AI Analysis Services
===================

Request-level service layer used by the CLI and web front ends.
"""

from .analysis_service import (
    AnalysisService,
    ComparisonResult,
    ComparisonSummary,
    error_response
)

__all__ = [
    'AnalysisService',
    'ComparisonResult',
    'ComparisonSummary',
    'error_response'
]
