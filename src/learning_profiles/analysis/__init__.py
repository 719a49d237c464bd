"""
Heuristic analysis engine.

Exposes the two core operations:
- analyze_evidence: score, classify and narrate one evidence item
- generate_profile: fold a student's analyzed evidence into a learning profile

Both are synchronous and free of I/O.
"""

from datetime import datetime
from typing import Optional, Sequence

from ..config import ScoringConfig
from ..models.analysis_outputs import AnalysisResult, AnalysisSource, LearningProfile
from ..models.database import Evidence, Student, TeacherPerspective, utc_now
from .narratives import (
    determine_successful_modalities,
    generate_improvement_areas,
    generate_justification,
    generate_pedagogical_recommendations,
    generate_strengths,
    generate_suggested_adaptations,
)
from .profile import AnalyzedItem, aggregate_learning_profile, calculate_confidence
from .scoring import calculate_adapted_score, classify_competency, evidence_matches_modality


def analyze_evidence(
    evidence: Evidence,
    perspective: Optional[TeacherPerspective] = None,
    analysis_date: Optional[datetime] = None,
    config: Optional[ScoringConfig] = None
) -> AnalysisResult:
    """Produce the heuristic analysis of one evidence item."""
    score = calculate_adapted_score(evidence, perspective, config)

    return AnalysisResult(
        evidence_id=evidence.id,
        adapted_score=score,
        competency_level=classify_competency(score),
        identified_strengths=generate_strengths(evidence, perspective),
        improvement_areas=generate_improvement_areas(evidence, perspective),
        successful_modalities=determine_successful_modalities(evidence, perspective),
        pedagogical_recommendations=generate_pedagogical_recommendations(evidence, perspective),
        suggested_adaptations=generate_suggested_adaptations(evidence, perspective),
        evaluation_justification=generate_justification(evidence, perspective, score),
        analysis_source=AnalysisSource.HEURISTIC,
        analysis_date=analysis_date or utc_now()
    )


def generate_profile(
    student: Student,
    perspective: Optional[TeacherPerspective],
    analyzed: Sequence[AnalyzedItem],
    generated_at: Optional[datetime] = None,
    config: Optional[ScoringConfig] = None
) -> LearningProfile:
    """Aggregate analyzed evidence into a learning profile; raises NoAnalyzedEvidenceError when empty."""
    return aggregate_learning_profile(student, perspective, analyzed, generated_at, config)


__all__ = [
    "analyze_evidence",
    "generate_profile",
    "calculate_adapted_score",
    "classify_competency",
    "evidence_matches_modality",
    "aggregate_learning_profile",
    "calculate_confidence",
]
