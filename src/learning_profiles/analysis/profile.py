"""
Learning profile aggregation.

Folds a student's analyzed evidence and teacher perspective into a single
narrative LearningProfile.
"""

import logging
from datetime import datetime
from statistics import mean
from typing import Optional, Sequence, Tuple, Union

from ..config import ScoringConfig, settings
from ..errors import NoAnalyzedEvidenceError
from ..models.analysis_outputs import AnalysisResult, AnalyzedEvidence, LearningProfile
from ..models.database import Evidence, PreferredModality, Student, TeacherPerspective, utc_now

logger = logging.getLogger(__name__)

AnalyzedItem = Union[AnalyzedEvidence, Tuple[Evidence, AnalysisResult]]

MODALITY_DESCRIPTIONS = {
    PreferredModality.VISUAL: "representaciones gráficas, diagramas y materiales visuales",
    PreferredModality.AUDITIVA: "explicaciones orales, discusiones y materiales auditivos",
    PreferredModality.KINESTESICA: "actividades manipulativas, experimentación y movimiento",
    PreferredModality.LECTORA: "textos escritos, lectura y actividades de escritura",
}

STRATEGIES_BY_MODALITY = {
    PreferredModality.VISUAL: "Mapas conceptuales, organizadores gráficos, colores y símbolos",
    PreferredModality.AUDITIVA: "Explicaciones verbales, música, discusiones grupales, repetición oral",
    PreferredModality.KINESTESICA: "Manipulativos, experimentos, movimiento, aprendizaje basado en proyectos",
}

INSTRUMENTS_BY_MODALITY = {
    PreferredModality.VISUAL: "Portafolios visuales, mapas conceptuales, infografías, presentaciones",
    PreferredModality.AUDITIVA: "Presentaciones orales, grabaciones, discusiones, exámenes orales",
    PreferredModality.KINESTESICA: "Proyectos prácticos, demostraciones, experimentos, construcción de modelos",
}

MATERIALS_BY_MODALITY = {
    PreferredModality.VISUAL: "Materiales gráficos, videos educativos, software visual, pictogramas",
    PreferredModality.AUDITIVA: "Audiolibros, grabaciones, música educativa, recursos sonoros",
    PreferredModality.KINESTESICA: "Manipulativos, kits de experimentos, juegos educativos, materiales táctiles",
}

ADAPTIVE_RUBRIC = "Rúbricas adaptativas, evaluación continua, autoevaluación"

STANDARD_ADAPTATIONS = [
    "Evaluación flexible con múltiples oportunidades",
    "Retroalimentación inmediata y positiva",
]

SHORT_SESSION_MINUTES = 25

# (minimum analyzed evidence, confidence), highest first
CONFIDENCE_STEPS = [
    (5, 0.9),
    (3, 0.75),
    (1, 0.6),
]
MISSING_PERSPECTIVE_PENALTY = 0.2


def _as_pair(item: AnalyzedItem) -> AnalyzedEvidence:
    if isinstance(item, AnalyzedEvidence):
        return item
    evidence, analysis = item
    return AnalyzedEvidence(evidence=evidence, analysis=analysis)


def _modality(perspective: Optional[TeacherPerspective]) -> Optional[PreferredModality]:
    return perspective.preferred_modality if perspective is not None else None


def identify_dominant_pattern(perspective: Optional[TeacherPerspective]) -> str:
    modality = _modality(perspective)
    if modality is not None:
        return f"Patrón {modality.value.lower()} dominante con preferencia por {MODALITY_DESCRIPTIONS[modality]}"
    return "Patrón multimodal - requiere evaluación adicional para identificar preferencias específicas"


def detect_special_abilities(
    perspective: Optional[TeacherPerspective],
    mean_score: float,
    threshold: float
) -> str:
    abilities = []
    if perspective is not None and perspective.observed_strengths:
        abilities.append(perspective.observed_strengths)
    if mean_score > threshold:
        abilities.append("Capacidad de aprendizaje superior en áreas de fortaleza")
    return ". ".join(abilities) or "Habilidades específicas por identificar mediante evaluación continua"


def identify_needs(student: Student, perspective: Optional[TeacherPerspective]) -> str:
    needs = []
    if student.special_needs:
        needs.append(f"Necesidades identificadas: {student.special_needs}")
    if perspective is not None and perspective.main_difficulties:
        needs.append(f"Áreas de apoyo: {perspective.main_difficulties}")
    return ". ".join(needs) or "Evaluación integral para identificar necesidades específicas"


def recommend_teaching_strategies(perspective: Optional[TeacherPerspective]) -> str:
    strategies = []
    if perspective is not None and perspective.effective_strategies:
        strategies.append(f"Continuar con: {perspective.effective_strategies}")
    modality_strategy = STRATEGIES_BY_MODALITY.get(_modality(perspective))
    if modality_strategy:
        strategies.append(modality_strategy)
    return ". ".join(strategies) or "Estrategias multimodales adaptadas al perfil individual"


def suggest_evaluation_instruments(perspective: Optional[TeacherPerspective]) -> str:
    instruments = []
    modality_instruments = INSTRUMENTS_BY_MODALITY.get(_modality(perspective))
    if modality_instruments:
        instruments.append(modality_instruments)
    instruments.append(ADAPTIVE_RUBRIC)
    return ", ".join(instruments)


def recommend_didactic_materials(perspective: Optional[TeacherPerspective]) -> str:
    materials = MATERIALS_BY_MODALITY.get(_modality(perspective))
    return materials or "Materiales adaptados a necesidades específicas identificadas"


def create_adaptation_plan(perspective: Optional[TeacherPerspective]) -> str:
    adaptations = []
    if perspective is not None:
        if perspective.previous_adaptations:
            adaptations.append(f"Mantener adaptaciones exitosas: {perspective.previous_adaptations}")
        if perspective.concentration_time and perspective.concentration_time < SHORT_SESSION_MINUTES:
            adaptations.append("Sesiones cortas de 15-20 minutos con descansos activos")
    adaptations.extend(STANDARD_ADAPTATIONS)
    return ". ".join(adaptations)


def calculate_confidence(evidence_count: int, has_perspective: bool) -> float:
    """Confidence grows with the amount of analyzed evidence and drops without a perspective."""
    confidence = 0.0
    for minimum, level in CONFIDENCE_STEPS:
        if evidence_count >= minimum:
            confidence = level
            break
    if not has_perspective:
        confidence -= MISSING_PERSPECTIVE_PENALTY
    return round(max(0.0, confidence), 2)


def aggregate_learning_profile(
    student: Student,
    perspective: Optional[TeacherPerspective],
    analyzed: Sequence[AnalyzedItem],
    generated_at: Optional[datetime] = None,
    config: Optional[ScoringConfig] = None
) -> LearningProfile:
    """
    Build a learning profile from a student's analyzed evidence.

    Args:
        student: The student being profiled
        perspective: The teacher's perspective on the student, if recorded
        analyzed: Analyzed evidence as AnalyzedEvidence or (Evidence, AnalysisResult) pairs
        generated_at: Generation timestamp; defaults to now
        config: Scoring constants; defaults to the global settings

    Returns:
        LearningProfile for the student

    Raises:
        NoAnalyzedEvidenceError: If no analyzed evidence is supplied
    """
    if not analyzed:
        raise NoAnalyzedEvidenceError(student.id)

    config = config or settings.scoring
    pairs = [_as_pair(item) for item in analyzed]

    foreign = [p.evidence.id for p in pairs if p.evidence.student_id != student.id]
    if foreign:
        logger.warning(
            f"Profiling student {student.id} with evidence owned by other students",
            extra={"student_id": student.id, "evidence_ids": foreign}
        )

    mean_score = mean(p.analysis.adapted_score for p in pairs)

    return LearningProfile(
        student_id=student.id,
        dominant_learning_pattern=identify_dominant_pattern(perspective),
        detected_special_abilities=detect_special_abilities(
            perspective, mean_score, config.superior_learner_threshold
        ),
        identified_needs=identify_needs(student, perspective),
        recommended_teaching_strategies=recommend_teaching_strategies(perspective),
        suggested_evaluation_instruments=suggest_evaluation_instruments(perspective),
        personalized_didactic_materials=recommend_didactic_materials(perspective),
        curricular_adaptation_plan=create_adaptation_plan(perspective),
        confidence_level=calculate_confidence(len(pairs), perspective is not None),
        evidence_count=len(pairs),
        generated_at=generated_at or utc_now()
    )
