"""
Pydantic models for analysis outputs.

These models define the structured outputs of evidence analysis and
learning-profile generation, plus the dashboard summary.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator

from .database import Evidence, new_id, utc_now


class CompetencyLevel(str, Enum):
    """Ordinal competency tiers derived from the adapted score."""
    INICIANDO = "Iniciando"
    EN_DESARROLLO = "En desarrollo"
    COMPETENTE = "Competente"
    AVANZADO = "Avanzado"

    @property
    def rank(self) -> int:
        """Position of the tier, 0 (Iniciando) to 3 (Avanzado)."""
        return list(CompetencyLevel).index(self)


class AnalysisSource(str, Enum):
    """Which engine produced an analysis result."""
    HEURISTIC = "heuristic"
    LLM = "llm"


class AnalysisResult(BaseModel):
    """Scored and narrated analysis of one evidence item. Immutable once created."""
    id: str = Field(default_factory=new_id)
    evidence_id: str = Field(min_length=1)
    adapted_score: float = Field(ge=60.0, le=100.0)
    competency_level: CompetencyLevel

    identified_strengths: str = Field(min_length=1)
    improvement_areas: str = Field(min_length=1)
    successful_modalities: str = Field(min_length=1)
    pedagogical_recommendations: str = Field(min_length=1)
    suggested_adaptations: str = Field(min_length=1)
    evaluation_justification: str = Field(min_length=1)

    analysis_source: AnalysisSource = AnalysisSource.HEURISTIC
    analysis_date: datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True
        frozen = True


class AnalyzedEvidence(BaseModel):
    """An evidence item paired with its analysis result."""
    evidence: Evidence
    analysis: AnalysisResult

    @validator("analysis")
    def validate_pairing(cls, v, values):
        """The analysis must belong to the paired evidence."""
        evidence = values.get("evidence")
        if evidence is not None and v.evidence_id != evidence.id:
            raise ValueError(
                f"Analysis {v.id} belongs to evidence {v.evidence_id}, not {evidence.id}"
            )
        return v


class LearningProfile(BaseModel):
    """Aggregated learning profile for one student."""
    id: str = Field(default_factory=new_id)
    student_id: str = Field(min_length=1)

    dominant_learning_pattern: str
    detected_special_abilities: str
    identified_needs: str
    recommended_teaching_strategies: str
    suggested_evaluation_instruments: str
    personalized_didactic_materials: str
    curricular_adaptation_plan: str

    confidence_level: float = Field(ge=0.0, le=1.0)
    evidence_count: int = Field(ge=1)
    generated_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ModalityShare(BaseModel):
    """Share of students with a given preferred modality."""
    name: str
    percentage: int = Field(ge=0, le=100)


class DashboardStats(BaseModel):
    """Summary counts for a teacher's dashboard."""
    total_students: int = 0
    total_evidence: int = 0
    analyzed_evidence: int = 0
    pending_review: int = 0
    profiles_generated: int = 0
    analysis_progress: int = Field(0, ge=0, le=100)  # percent
    modality_breakdown: List[ModalityShare] = Field(default_factory=list)
