"""Student chat agent: answers a teacher's question from a student's stored records."""

import time
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models import AnalyzedEvidence, Evidence, LearningProfile, Student, TeacherPerspective
from ..utils.llm import LLMResponse
from .base import AgentResult, BaseAgent

NOT_RECORDED = "No registrado"


class StudentContext(BaseModel):
    """Everything known about a student, as given to the chat prompt."""
    student: Student
    perspective: Optional[TeacherPerspective] = None
    profile: Optional[LearningProfile] = None
    evidence: List[Evidence] = Field(default_factory=list)
    analyzed: List[AnalyzedEvidence] = Field(default_factory=list)


def _value(value, fallback: str = NOT_RECORDED) -> str:
    if value is None or value == "":
        return fallback
    return getattr(value, "value", value)


def build_student_context(context: StudentContext) -> str:
    """Format a student's records as the plain-text context section of the chat prompt."""
    student = context.student
    lines = [
        f"INFORMACIÓN DEL ESTUDIANTE {student.name.upper()}:",
        "",
        "PERFIL BÁSICO:",
        f"- Nombre: {student.name}",
        f"- Edad: {student.age}",
        f"- Grado: {student.grade}",
        f"- Asignaturas: {student.main_subjects}",
        f"- Necesidades especiales: {_value(student.special_needs)}",
        f"- Número de evidencias evaluadas: {len(context.evidence)}",
        f"- Evidencias analizadas: {len(context.analyzed)}",
    ]

    perspective = context.perspective
    if perspective is not None:
        concentration = (
            f"{perspective.concentration_time} minutos" if perspective.concentration_time else NOT_RECORDED
        )
        lines += [
            "",
            "PERSPECTIVA DEL DOCENTE:",
            f"- Nivel de atención: {_value(perspective.attention_level)}",
            f"- Participación verbal: {_value(perspective.verbal_participation)}",
            f"- Interacción social: {_value(perspective.social_interaction)}",
            f"- Modalidad preferida: {_value(perspective.preferred_modality)}",
            f"- Tiempo de concentración: {concentration}",
            f"- Fortalezas observadas: {_value(perspective.observed_strengths)}",
            f"- Actividades exitosas: {_value(perspective.successful_activities)}",
            f"- Estrategias efectivas: {_value(perspective.effective_strategies)}",
            f"- Principales dificultades: {_value(perspective.main_difficulties)}",
            f"- Motivadores principales: {_value(perspective.main_motivators)}",
        ]

    profile = context.profile
    if profile is not None:
        lines += [
            "",
            "PERFIL DE APRENDIZAJE:",
            f"- Patrón dominante: {_value(profile.dominant_learning_pattern, 'No identificado')}",
            f"- Habilidades especiales: {_value(profile.detected_special_abilities, 'No identificadas')}",
            f"- Necesidades identificadas: {_value(profile.identified_needs, 'No identificadas')}",
            f"- Estrategias recomendadas: {_value(profile.recommended_teaching_strategies, 'No definidas')}",
        ]

    if context.analyzed:
        lines += ["", "ANÁLISIS DE EVIDENCIAS:"]
        for index, item in enumerate(context.analyzed, start=1):
            analysis = item.analysis
            lines += [
                "",
                f"EVIDENCIA {index}: {item.evidence.task_title}",
                f"- Asignatura: {item.evidence.subject}",
                f"- Tipo: {item.evidence.evidence_type.value}",
                f"- Puntuación adaptada: {analysis.adapted_score:.1f}",
                f"- Nivel de competencia: {analysis.competency_level.value}",
                f"- Fortalezas identificadas: {analysis.identified_strengths}",
                f"- Áreas de mejora: {analysis.improvement_areas}",
                f"- Modalidades exitosas: {analysis.successful_modalities}",
                f"- Recomendaciones pedagógicas: {analysis.pedagogical_recommendations}",
                f"- Adaptaciones sugeridas: {analysis.suggested_adaptations}",
            ]

    return "\n".join(lines)


class StudentChatAgent(BaseAgent):
    """Answers teacher questions about one student using only that student's records."""

    @property
    def agent_type(self) -> str:
        return "StudentChatAgent"

    @property
    def role_description(self) -> str:
        return "Answer a teacher's questions about a student from the student's assessment records"

    async def execute(
        self,
        context: Optional[StudentContext] = None,
        question: Optional[str] = None,
        **kwargs
    ) -> AgentResult:
        start_time = time.time()

        if context is None:
            return self._result(False, error="No student context provided", start_time=start_time)
        if not question or not question.strip():
            return self._result(False, error="No question provided", start_time=start_time)

        student_id = context.student.id
        try:
            prompt = await self.render_prompt("student_chat", {
                "student_name": context.student.name,
                "student_context": build_student_context(context),
                "question": question.strip(),
            })
            response = await self.llm_call(prompt, metadata={"student_id": student_id})
            answer = response.content if isinstance(response, LLMResponse) else str(response)

            return self._result(
                True,
                data={"answer": answer.strip()},
                start_time=start_time,
                student_id=student_id,
                prompt_length=len(prompt)
            )

        except Exception as e:
            self.logger.error(f"Failed to answer question about student {student_id}: {e}")
            return self._result(
                False,
                error=f"No pude procesar la pregunta sobre el estudiante: {e}",
                start_time=start_time,
                error_type=type(e).__name__,
                student_id=student_id
            )
