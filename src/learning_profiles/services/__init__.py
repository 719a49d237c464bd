"""Service layer for learning profiles."""

from .assessment import AssessmentService, ServiceConfig

__all__ = ["AssessmentService", "ServiceConfig"]
