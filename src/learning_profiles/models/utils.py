"""
Utility functions for working with models and schemas.

Provides helper functions for:
- Converting database rows to Pydantic models
- Mapping uploaded file types to evidence types
- Dashboard statistics calculations
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

from .analysis_outputs import DashboardStats, ModalityShare
from .database import Evidence, EvidenceType, PreferredModality, Student, TeacherPerspective

ModelT = TypeVar("ModelT", bound=BaseModel)


def evidence_type_from_mimetype(mimetype: Optional[str]) -> EvidenceType:
    """Map an upload MIME type to an evidence type; anything unrecognised is text."""
    if not mimetype:
        return EvidenceType.TEXTO
    major = mimetype.split("/", 1)[0].strip().lower()
    if major == "image":
        return EvidenceType.IMAGEN
    elif major == "video":
        return EvidenceType.VIDEO
    elif major == "audio":
        return EvidenceType.AUDIO
    else:
        return EvidenceType.TEXTO


def row_to_model(row: Optional[Mapping[str, Any]], model_cls: Type[ModelT]) -> Optional[ModelT]:
    """Convert a database row (asyncpg Record or dict) to a Pydantic model."""
    if row is None:
        return None
    return model_cls.model_validate(dict(row))


def rows_to_models(rows: Iterable[Mapping[str, Any]], model_cls: Type[ModelT]) -> List[ModelT]:
    return [model_cls.model_validate(dict(row)) for row in rows]


def row_to_perspective(row: Optional[Mapping[str, Any]]) -> Optional[TeacherPerspective]:
    """Stored perspectives may predate the closed enumerations, so load them leniently."""
    if row is None:
        return None
    return TeacherPerspective.from_legacy(dict(row))


def calculate_modality_breakdown(perspectives: Iterable[TeacherPerspective]) -> List[ModalityShare]:
    """Percentage of perspectives per preferred modality, rounded to whole numbers."""
    counts: Dict[PreferredModality, int] = {modality: 0 for modality in PreferredModality}
    for perspective in perspectives:
        if perspective.preferred_modality is not None:
            counts[perspective.preferred_modality] += 1

    total = sum(counts.values())
    return [
        ModalityShare(
            name=modality.value,
            percentage=round(count / total * 100) if total else 0
        )
        for modality, count in counts.items()
    ]


def build_dashboard_stats(
    students: List[Student],
    evidence: List[Evidence],
    perspectives: List[TeacherPerspective],
    profiles_generated: int
) -> DashboardStats:
    """Summarise counts and analysis progress for a set of students."""
    total_evidence = len(evidence)
    analyzed = sum(1 for item in evidence if item.is_analyzed)

    return DashboardStats(
        total_students=len(students),
        total_evidence=total_evidence,
        analyzed_evidence=analyzed,
        pending_review=total_evidence - analyzed,
        profiles_generated=profiles_generated,
        analysis_progress=round(analyzed / total_evidence * 100) if total_evidence else 0,
        modality_breakdown=calculate_modality_breakdown(perspectives)
    )
