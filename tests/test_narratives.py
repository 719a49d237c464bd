"""
Tests for the narrative text of evidence analysis results.
"""

import pytest

from learning_profiles.analysis.narratives import (
    determine_successful_modalities,
    generate_improvement_areas,
    generate_justification,
    generate_pedagogical_recommendations,
    generate_strengths,
    generate_suggested_adaptations,
)
from learning_profiles.models import Evidence, TeacherPerspective


class TestStrengths:

    def test_combines_teacher_strengths_and_evidence_type(self, image_evidence, visual_perspective):
        text = generate_strengths(image_evidence, visual_perspective)
        assert text == (
            "Fortalezas observadas por el docente: Dibujo y organización espacial. "
            "Excelente representación visual de conceptos"
        )

    @pytest.mark.parametrize("evidence_type,expected", [
        ("imagen", "Excelente representación visual de conceptos"),
        ("audio", "Comunicación oral clara y estructurada"),
        ("video", "Integración efectiva de múltiples modalidades"),
        ("texto", "Demuestra comprensión de conceptos básicos"),
    ])
    def test_evidence_type_fragment(self, student, evidence_type, expected):
        evidence = Evidence(student_id=student.id, task_title="Tarea", subject="Arte", evidence_type=evidence_type)
        assert generate_strengths(evidence, None) == expected


class TestImprovementAreas:

    def test_uses_difficulties_from_both_sources(self, student, visual_perspective):
        evidence = Evidence(
            student_id=student.id,
            task_title="Problemas",
            subject="Matemáticas",
            reported_difficulties="Fracciones"
        )
        text = generate_improvement_areas(evidence, visual_perspective)

        assert text == "Áreas identificadas: Lectura en voz alta. Dificultades reportadas: Fracciones"

    def test_fallback(self, text_evidence):
        assert generate_improvement_areas(text_evidence, None) == "Continuar fortaleciendo habilidades desarrolladas"


class TestSuccessfulModalities:

    def test_names_preferred_modality_in_lowercase(self, text_evidence, student):
        perspective = TeacherPerspective(student_id=student.id, preferred_modality="kinestesica")
        assert determine_successful_modalities(text_evidence, perspective) == (
            "Modalidad kinestésica muestra mayor efectividad"
        )

    def test_fallback_without_modality(self, text_evidence, student):
        perspective = TeacherPerspective(student_id=student.id)
        assert determine_successful_modalities(text_evidence, perspective) == (
            "Evaluar múltiples modalidades para identificar preferencias"
        )


class TestPedagogicalRecommendations:

    def test_strategies_and_modality_suggestion(self, image_evidence, visual_perspective):
        assert generate_pedagogical_recommendations(image_evidence, visual_perspective) == (
            "Continuar con estrategias efectivas: Mapas mentales. "
            "Incrementar uso de mapas conceptuales y diagramas"
        )

    def test_reading_modality_has_no_specific_suggestion(self, text_evidence, student):
        perspective = TeacherPerspective(student_id=student.id, preferred_modality="Lectora")
        assert generate_pedagogical_recommendations(text_evidence, perspective) == (
            "Adaptar metodología según perfil de aprendizaje identificado"
        )


class TestSuggestedAdaptations:

    def test_short_concentration_and_written_instructions(self, text_evidence, student):
        perspective = TeacherPerspective(student_id=student.id, concentration_time=15, instruction_needs="Escritas")
        assert generate_suggested_adaptations(text_evidence, perspective) == (
            "Fragmentar tareas en segmentos de 15-20 minutos. "
            "Proporcionar instrucciones escritas claras y secuenciales"
        )

    def test_visual_instruction_needs(self, image_evidence, visual_perspective):
        # 25 minutes is not a short span
        assert generate_suggested_adaptations(image_evidence, visual_perspective) == (
            "Incluir apoyos visuales en todas las instrucciones"
        )

    def test_fallback(self, text_evidence):
        assert generate_suggested_adaptations(text_evidence, None) == (
            "Mantener adaptaciones actuales según necesidades específicas"
        )


class TestJustification:

    def test_cites_modality_attention_and_score(self, image_evidence, visual_perspective):
        text = generate_justification(image_evidence, visual_perspective, 100.0)

        assert "(Visual)" in text
        assert "(Alta)" in text
        assert "La puntuación de 100.0 refleja" in text

    def test_defaults_without_perspective(self, text_evidence):
        text = generate_justification(text_evidence, None, 75.0)

        assert "(por determinar)" in text
        assert "(variable)" in text
        assert "75.0" in text
