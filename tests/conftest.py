"""Shared fixtures for the learning profiles test suite."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from learning_profiles.config import ScoringConfig
from learning_profiles.models import Evidence, Student, TeacherPerspective
from learning_profiles.utils.llm import LLMClient, LLMResponse


@pytest.fixture
def scoring_config():
    """Scoring constants pinned to their defaults, independent of the environment."""
    return ScoringConfig(
        base_score=75.0,
        min_score=60.0,
        max_score=100.0,
        modality_bonus=10.0,
        superior_learner_threshold=85.0
    )


@pytest.fixture
def fixed_time():
    return datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def student():
    return Student(
        id="student-1",
        teacher_id="teacher-1",
        name="Ana López",
        age=9,
        grade="4º Primaria",
        main_subjects="Matemáticas, Lengua"
    )


@pytest.fixture
def visual_perspective(student):
    """An attentive, active, visual learner with a 25 minute concentration span."""
    return TeacherPerspective(
        student_id=student.id,
        attention_level="Alta",
        verbal_participation="Activa",
        social_interaction="Sociable",
        preferred_modality="Visual",
        instruction_needs="Visuales",
        concentration_time=25,
        observed_strengths="Dibujo y organización espacial",
        effective_strategies="Mapas mentales",
        main_difficulties="Lectura en voz alta",
        previous_adaptations="Tiempo extra en exámenes"
    )


@pytest.fixture
def image_evidence(student):
    return Evidence(
        id="evidence-image",
        student_id=student.id,
        task_title="Mapa del ciclo del agua",
        subject="Ciencias",
        evidence_type="imagen",
        time_spent=20
    )


@pytest.fixture
def text_evidence(student):
    return Evidence(
        id="evidence-text",
        student_id=student.id,
        task_title="Redacción sobre mi familia",
        subject="Lengua",
        evidence_type="texto"
    )


@pytest.fixture
def mock_llm_client():
    """LLM client double whose call() returns a fixed response."""
    client = MagicMock(spec=LLMClient)
    client.call = AsyncMock(return_value=LLMResponse(content="Respuesta de prueba"))
    return client
