"""
Heuristic evidence scoring and competency classification.

The adapted score starts from a fixed base and is adjusted for how the
student's working time compares to their concentration span, their attention
and participation, and whether the evidence format matches their preferred
modality. The result is clamped to the configured score range.
"""

from typing import Dict, Optional

from ..config import ScoringConfig, settings
from ..models.analysis_outputs import CompetencyLevel
from ..models.database import (
    AttentionLevel,
    Evidence,
    EvidenceType,
    PreferredModality,
    TeacherPerspective,
    VerbalParticipation,
)

# (upper bound on time_spent / concentration_time, adjustment); first match wins
TIME_FIT_STEPS = [
    (1.0, 15.0),
    (1.5, 10.0),
    (2.0, 0.0),
]
TIME_OVERRUN_PENALTY = -5.0

ATTENTION_ADJUSTMENTS: Dict[AttentionLevel, float] = {
    AttentionLevel.ALTA: 5.0,
    AttentionLevel.BAJA: -3.0,
}

PARTICIPATION_ADJUSTMENTS: Dict[VerbalParticipation, float] = {
    VerbalParticipation.ACTIVA: 3.0,
    VerbalParticipation.LIMITADA: -2.0,
}

MODALITY_BY_EVIDENCE_TYPE: Dict[EvidenceType, PreferredModality] = {
    EvidenceType.IMAGEN: PreferredModality.VISUAL,
    EvidenceType.AUDIO: PreferredModality.AUDITIVA,
    EvidenceType.VIDEO: PreferredModality.KINESTESICA,
}

# (minimum score, level), highest first
COMPETENCY_THRESHOLDS = [
    (90.0, CompetencyLevel.AVANZADO),
    (80.0, CompetencyLevel.COMPETENTE),
    (70.0, CompetencyLevel.EN_DESARROLLO),
]


def time_fit_adjustment(time_spent: Optional[int], concentration_time: Optional[int]) -> float:
    """Adjustment for working time relative to concentration span. Zero or missing skips it."""
    if not time_spent or not concentration_time:
        return 0.0

    ratio = time_spent / concentration_time
    for upper_bound, adjustment in TIME_FIT_STEPS:
        if ratio <= upper_bound:
            return adjustment
    return TIME_OVERRUN_PENALTY


def evidence_matches_modality(evidence: Evidence, perspective: Optional[TeacherPerspective]) -> bool:
    """True when the evidence format corresponds to the student's preferred modality."""
    if perspective is None or perspective.preferred_modality is None:
        return False
    return MODALITY_BY_EVIDENCE_TYPE.get(evidence.evidence_type) == perspective.preferred_modality


def calculate_adapted_score(
    evidence: Evidence,
    perspective: Optional[TeacherPerspective] = None,
    config: Optional[ScoringConfig] = None
) -> float:
    """
    Score an evidence item for a student.

    Args:
        evidence: The evidence being scored
        perspective: The teacher's perspective on the student, if recorded
        config: Scoring constants; defaults to the global settings

    Returns:
        Adapted score within [config.min_score, config.max_score]
    """
    config = config or settings.scoring
    score = config.base_score

    if perspective is not None:
        score += time_fit_adjustment(evidence.time_spent, perspective.concentration_time)
        score += ATTENTION_ADJUSTMENTS.get(perspective.attention_level, 0.0)
        score += PARTICIPATION_ADJUSTMENTS.get(perspective.verbal_participation, 0.0)

    if evidence_matches_modality(evidence, perspective):
        score += config.modality_bonus

    return min(config.max_score, max(config.min_score, score))


def classify_competency(score: float) -> CompetencyLevel:
    """Map an adapted score to its competency tier."""
    for minimum, level in COMPETENCY_THRESHOLDS:
        if score >= minimum:
            return level
    return CompetencyLevel.INICIANDO
