"""
Narrative text for evidence analysis results.

Each function composes Spanish sentence fragments from whichever evidence and
perspective fields are present and falls back to a fixed sentence when none
apply, so the output is never empty.
"""

from typing import List, Optional

from ..models.database import (
    Evidence,
    EvidenceType,
    InstructionNeeds,
    PreferredModality,
    TeacherPerspective,
)

SEPARATOR = ". "

STRENGTH_BY_EVIDENCE_TYPE = {
    EvidenceType.IMAGEN: "Excelente representación visual de conceptos",
    EvidenceType.AUDIO: "Comunicación oral clara y estructurada",
    EvidenceType.VIDEO: "Integración efectiva de múltiples modalidades",
}

RECOMMENDATION_BY_MODALITY = {
    PreferredModality.VISUAL: "Incrementar uso de mapas conceptuales y diagramas",
    PreferredModality.AUDITIVA: "Incorporar más discusiones grupales y explicaciones orales",
    PreferredModality.KINESTESICA: "Incluir actividades manipulativas y experimentación",
}

ADAPTATION_BY_INSTRUCTION_NEEDS = {
    InstructionNeeds.ESCRITAS: "Proporcionar instrucciones escritas claras y secuenciales",
    InstructionNeeds.VISUALES: "Incluir apoyos visuales en todas las instrucciones",
}

SHORT_CONCENTRATION_MINUTES = 20


def _join(fragments: List[str], fallback: str) -> str:
    return SEPARATOR.join(fragments) or fallback


def generate_strengths(evidence: Evidence, perspective: Optional[TeacherPerspective]) -> str:
    fragments = []
    if perspective is not None and perspective.observed_strengths:
        fragments.append(f"Fortalezas observadas por el docente: {perspective.observed_strengths}")

    type_strength = STRENGTH_BY_EVIDENCE_TYPE.get(evidence.evidence_type)
    if type_strength:
        fragments.append(type_strength)

    return _join(fragments, "Demuestra comprensión de conceptos básicos")


def generate_improvement_areas(evidence: Evidence, perspective: Optional[TeacherPerspective]) -> str:
    fragments = []
    if perspective is not None and perspective.main_difficulties:
        fragments.append(f"Áreas identificadas: {perspective.main_difficulties}")
    if evidence.reported_difficulties:
        fragments.append(f"Dificultades reportadas: {evidence.reported_difficulties}")

    return _join(fragments, "Continuar fortaleciendo habilidades desarrolladas")


def determine_successful_modalities(evidence: Evidence, perspective: Optional[TeacherPerspective]) -> str:
    if perspective is not None and perspective.preferred_modality is not None:
        return f"Modalidad {perspective.preferred_modality.value.lower()} muestra mayor efectividad"
    return "Evaluar múltiples modalidades para identificar preferencias"


def generate_pedagogical_recommendations(evidence: Evidence, perspective: Optional[TeacherPerspective]) -> str:
    fragments = []
    if perspective is not None:
        if perspective.effective_strategies:
            fragments.append(f"Continuar con estrategias efectivas: {perspective.effective_strategies}")

        suggestion = RECOMMENDATION_BY_MODALITY.get(perspective.preferred_modality)
        if suggestion:
            fragments.append(suggestion)

    return _join(fragments, "Adaptar metodología según perfil de aprendizaje identificado")


def generate_suggested_adaptations(evidence: Evidence, perspective: Optional[TeacherPerspective]) -> str:
    fragments = []
    if perspective is not None:
        if perspective.concentration_time and perspective.concentration_time < SHORT_CONCENTRATION_MINUTES:
            fragments.append("Fragmentar tareas en segmentos de 15-20 minutos")

        instruction = ADAPTATION_BY_INSTRUCTION_NEEDS.get(perspective.instruction_needs)
        if instruction:
            fragments.append(instruction)

    return _join(fragments, "Mantener adaptaciones actuales según necesidades específicas")


def generate_justification(
    evidence: Evidence,
    perspective: Optional[TeacherPerspective],
    score: float
) -> str:
    """Fixed-template justification citing modality, attention level and score."""
    modality = "por determinar"
    attention = "variable"
    if perspective is not None:
        if perspective.preferred_modality is not None:
            modality = perspective.preferred_modality.value
        if perspective.attention_level is not None:
            attention = perspective.attention_level.value

    return (
        "La evaluación considera las características específicas del estudiante, "
        f"incluyendo su modalidad de aprendizaje preferida ({modality}), "
        f"nivel de atención ({attention}) y las estrategias pedagógicas que han "
        f"demostrado efectividad. La puntuación de {score:.1f} refleja un ajuste "
        "adaptativo basado en las necesidades especiales identificadas."
    )
