"""
Record models for students, teacher perspectives and evidence.

These Pydantic models map to the stored tables:
- students
- teacher_perspectives
- evidence

Categorical perspective fields are closed enumerations. Incoming values are
normalised (case, accents, legacy spellings) and unknown values are rejected;
use TeacherPerspective.from_legacy() to load stored rows leniently.
"""

import logging
import unicodedata
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


def new_id() -> str:
    """Generate a record identifier."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fold_text(value: str) -> str:
    """Lowercase, trim and strip accents so 'Kinestésica' matches 'kinestesica'."""
    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class CategoricalChoice(str, Enum):
    """Base for enumerations parsed from free-form teacher input."""

    @classmethod
    def lookup(cls, value: Any) -> Optional["CategoricalChoice"]:
        """Return the member matching value, or None when nothing matches."""
        if value is None or isinstance(value, cls):
            return value
        key = fold_text(str(value))
        if not key:
            return None
        for member in cls:
            if fold_text(member.value) == key:
                return member
        return None


class AttentionLevel(CategoricalChoice):
    ALTA = "Alta"
    MEDIA = "Media"
    BAJA = "Baja"
    VARIABLE = "Variable"


class VerbalParticipation(CategoricalChoice):
    ACTIVA = "Activa"
    MODERADA = "Moderada"
    LIMITADA = "Limitada"
    NO_VERBAL = "No verbal"


class SocialInteraction(CategoricalChoice):
    SOCIABLE = "Sociable"
    SELECTIVO = "Selectivo"
    RESERVADO = "Reservado"
    EVITA = "Evita"


class PreferredModality(CategoricalChoice):
    VISUAL = "Visual"
    AUDITIVA = "Auditiva"
    KINESTESICA = "Kinestésica"
    LECTORA = "Lectora"

    @classmethod
    def lookup(cls, value: Any) -> Optional["PreferredModality"]:
        """Match on word stems so 'visual-espacial' or 'Lecto-escritura' resolve."""
        if value is None or isinstance(value, cls):
            return value
        key = fold_text(str(value))
        if not key:
            return None
        if "visual" in key:
            return cls.VISUAL
        if "auditiv" in key:
            return cls.AUDITIVA
        if "kinest" in key or "cinest" in key:
            return cls.KINESTESICA
        if "lect" in key:
            return cls.LECTORA
        return None


class InstructionNeeds(CategoricalChoice):
    UNA_VEZ = "Una vez"
    REPETIDAS = "Repetidas"
    ESCRITAS = "Escritas"
    VISUALES = "Visuales"


class EvidenceType(CategoricalChoice):
    TEXTO = "texto"
    IMAGEN = "imagen"
    VIDEO = "video"
    AUDIO = "audio"


# Field name -> enumeration for the categorical perspective fields
PERSPECTIVE_CHOICES: Dict[str, type] = {
    "attention_level": AttentionLevel,
    "verbal_participation": VerbalParticipation,
    "social_interaction": SocialInteraction,
    "preferred_modality": PreferredModality,
    "instruction_needs": InstructionNeeds,
}


class Student(BaseModel):
    """Maps to the students table."""
    id: str = Field(default_factory=new_id)
    teacher_id: str = Field(min_length=1)  # owner
    name: str = Field(min_length=1)
    age: int = Field(ge=1, le=120)
    grade: str = Field(min_length=1)
    main_subjects: str = Field(min_length=1)
    special_needs: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        validate_assignment = True


class TeacherPerspective(BaseModel):
    """Maps to the teacher_perspectives table. At most one per student."""
    id: str = Field(default_factory=new_id)
    student_id: str = Field(min_length=1)

    attention_level: Optional[AttentionLevel] = None
    verbal_participation: Optional[VerbalParticipation] = None
    social_interaction: Optional[SocialInteraction] = None
    preferred_modality: Optional[PreferredModality] = None
    instruction_needs: Optional[InstructionNeeds] = None

    concentration_time: Optional[int] = Field(None, ge=0)  # minutes
    self_esteem_level: Optional[int] = Field(None, ge=1, le=10)

    observed_strengths: Optional[str] = None
    successful_activities: Optional[str] = None
    effective_strategies: Optional[str] = None
    main_difficulties: Optional[str] = None
    conflictive_situations: Optional[str] = None
    previous_adaptations: Optional[str] = None
    preferred_expression: Optional[str] = None
    main_motivators: Optional[str] = None
    additional_comments: Optional[str] = None
    suspected_special_needs: Optional[str] = None
    current_supports: Optional[str] = None

    class Config:
        from_attributes = True
        validate_assignment = True

    @model_validator(mode="before")
    @classmethod
    def normalize_choices(cls, values):
        """Resolve categorical fields to their enumeration members."""
        if not isinstance(values, dict):
            return values
        values = dict(values)
        for field_name, choice_type in PERSPECTIVE_CHOICES.items():
            raw = values.get(field_name)
            if raw is None or isinstance(raw, choice_type):
                continue
            if isinstance(raw, str) and not raw.strip():
                values[field_name] = None
                continue
            member = choice_type.lookup(raw)
            if member is None:
                allowed = ", ".join(m.value for m in choice_type)
                raise ValueError(f"Unrecognized {field_name} {raw!r}; expected one of: {allowed}")
            values[field_name] = member
        return values

    @classmethod
    def from_legacy(cls, record: Dict[str, Any]) -> "TeacherPerspective":
        """
        Load a stored perspective without rejecting legacy categorical values.

        Unrecognized values are dropped to None, which the scoring rules treat
        as "no adjustment".
        """
        data = dict(record)
        for field_name, choice_type in PERSPECTIVE_CHOICES.items():
            raw = data.get(field_name)
            if raw is None or isinstance(raw, choice_type):
                continue
            member = choice_type.lookup(raw)
            if member is None and str(raw).strip():
                logger.warning(
                    f"Dropping unrecognized {field_name} value {raw!r}",
                    extra={"perspective_id": data.get("id"), "student_id": data.get("student_id")}
                )
            data[field_name] = member
        return cls.model_validate(data)


class Evidence(BaseModel):
    """Maps to the evidence table."""
    id: str = Field(default_factory=new_id)
    student_id: str = Field(min_length=1)
    task_title: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    evidence_type: EvidenceType = EvidenceType.TEXTO
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    standard_rubric: Optional[str] = None
    evaluated_competencies: Optional[str] = None
    original_instructions: Optional[str] = None
    time_spent: Optional[int] = Field(None, ge=0)  # minutes
    reported_difficulties: Optional[str] = None
    is_analyzed: bool = False
    completion_date: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True

    @model_validator(mode="before")
    @classmethod
    def normalize_evidence_type(cls, values):
        """Accept 'Imagen', 'AUDIO' and similar spellings."""
        if isinstance(values, dict) and isinstance(values.get("evidence_type"), str):
            member = EvidenceType.lookup(values["evidence_type"])
            if member is not None:
                values = {**values, "evidence_type": member}
        return values
