"""
Core data models for learning profiles.

This package contains:
- Record models for students, teacher perspectives and evidence
- Analysis output schemas (analysis results, learning profiles, dashboard stats)
"""

from .database import (
    AttentionLevel,
    Evidence,
    EvidenceType,
    InstructionNeeds,
    PreferredModality,
    SocialInteraction,
    Student,
    TeacherPerspective,
    VerbalParticipation,
)
from .analysis_outputs import (
    AnalysisResult,
    AnalysisSource,
    AnalyzedEvidence,
    CompetencyLevel,
    DashboardStats,
    LearningProfile,
    ModalityShare,
)
from . import utils

__all__ = [
    # Record models
    "Student",
    "TeacherPerspective",
    "Evidence",

    # Categorical fields
    "AttentionLevel",
    "VerbalParticipation",
    "SocialInteraction",
    "PreferredModality",
    "InstructionNeeds",
    "EvidenceType",

    # Analysis outputs
    "AnalysisResult",
    "AnalysisSource",
    "AnalyzedEvidence",
    "CompetencyLevel",
    "LearningProfile",
    "ModalityShare",
    "DashboardStats",

    # Utilities
    "utils"
]
