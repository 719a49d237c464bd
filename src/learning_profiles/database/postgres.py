"""
PostgreSQL repository backed by an asyncpg pool.

The analyzed latch is a conditional UPDATE ... WHERE is_analyzed = false run in
the same transaction as the analysis insert; the profile upsert is an
INSERT ... ON CONFLICT (student_id) DO UPDATE.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from ..errors import DuplicateRecordError, EvidenceAlreadyAnalyzedError, EvidenceNotFoundError, StudentNotFoundError
from ..models import AnalysisResult, AnalyzedEvidence, Evidence, LearningProfile, Student, TeacherPerspective
from ..models.utils import row_to_model, row_to_perspective, rows_to_models
from .connection import DatabasePool, get_database_pool
from .repositories import STUDENT_UPDATABLE_FIELDS, AssessmentRepository


logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS students (
    id TEXT PRIMARY KEY,
    teacher_id TEXT NOT NULL,
    name TEXT NOT NULL,
    age INTEGER NOT NULL,
    grade TEXT NOT NULL,
    main_subjects TEXT NOT NULL,
    special_needs TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS students_teacher_id_idx ON students (teacher_id);

CREATE TABLE IF NOT EXISTS teacher_perspectives (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL UNIQUE REFERENCES students (id) ON DELETE CASCADE,
    attention_level TEXT,
    verbal_participation TEXT,
    social_interaction TEXT,
    preferred_modality TEXT,
    instruction_needs TEXT,
    concentration_time INTEGER,
    self_esteem_level INTEGER,
    observed_strengths TEXT,
    successful_activities TEXT,
    effective_strategies TEXT,
    main_difficulties TEXT,
    conflictive_situations TEXT,
    previous_adaptations TEXT,
    preferred_expression TEXT,
    main_motivators TEXT,
    additional_comments TEXT,
    suspected_special_needs TEXT,
    current_supports TEXT
);

CREATE TABLE IF NOT EXISTS evidence (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL REFERENCES students (id) ON DELETE CASCADE,
    task_title TEXT NOT NULL,
    subject TEXT NOT NULL,
    evidence_type TEXT NOT NULL,
    file_name TEXT,
    file_path TEXT,
    standard_rubric TEXT,
    evaluated_competencies TEXT,
    original_instructions TEXT,
    time_spent INTEGER,
    reported_difficulties TEXT,
    is_analyzed BOOLEAN NOT NULL DEFAULT false,
    completion_date TIMESTAMPTZ NOT NULL DEFAULT now(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS evidence_student_id_idx ON evidence (student_id);

CREATE TABLE IF NOT EXISTS analysis_results (
    id TEXT PRIMARY KEY,
    evidence_id TEXT NOT NULL UNIQUE REFERENCES evidence (id) ON DELETE CASCADE,
    adapted_score DOUBLE PRECISION NOT NULL CHECK (adapted_score BETWEEN 60 AND 100),
    competency_level TEXT NOT NULL,
    identified_strengths TEXT NOT NULL,
    improvement_areas TEXT NOT NULL,
    successful_modalities TEXT NOT NULL,
    pedagogical_recommendations TEXT NOT NULL,
    suggested_adaptations TEXT NOT NULL,
    evaluation_justification TEXT NOT NULL,
    analysis_source TEXT NOT NULL DEFAULT 'heuristic',
    analysis_date TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS learning_profiles (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL UNIQUE REFERENCES students (id) ON DELETE CASCADE,
    dominant_learning_pattern TEXT NOT NULL,
    detected_special_abilities TEXT NOT NULL,
    identified_needs TEXT NOT NULL,
    recommended_teaching_strategies TEXT NOT NULL,
    suggested_evaluation_instruments TEXT NOT NULL,
    personalized_didactic_materials TEXT NOT NULL,
    curricular_adaptation_plan TEXT NOT NULL,
    confidence_level DOUBLE PRECISION NOT NULL,
    evidence_count INTEGER NOT NULL,
    generated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ
);
"""

PERSPECTIVE_COLUMNS = [
    "id", "student_id", "attention_level", "verbal_participation", "social_interaction",
    "preferred_modality", "instruction_needs", "concentration_time", "self_esteem_level",
    "observed_strengths", "successful_activities", "effective_strategies", "main_difficulties",
    "conflictive_situations", "previous_adaptations", "preferred_expression", "main_motivators",
    "additional_comments", "suspected_special_needs", "current_supports",
]

EVIDENCE_COLUMNS = [
    "id", "student_id", "task_title", "subject", "evidence_type", "file_name", "file_path",
    "standard_rubric", "evaluated_competencies", "original_instructions", "time_spent",
    "reported_difficulties", "is_analyzed", "completion_date", "created_at",
]

ANALYSIS_COLUMNS = [
    "id", "evidence_id", "adapted_score", "competency_level", "identified_strengths",
    "improvement_areas", "successful_modalities", "pedagogical_recommendations",
    "suggested_adaptations", "evaluation_justification", "analysis_source", "analysis_date",
]

PROFILE_COLUMNS = [
    "id", "student_id", "dominant_learning_pattern", "detected_special_abilities",
    "identified_needs", "recommended_teaching_strategies", "suggested_evaluation_instruments",
    "personalized_didactic_materials", "curricular_adaptation_plan", "confidence_level",
    "evidence_count", "generated_at", "updated_at",
]


def _placeholders(count: int) -> str:
    return ", ".join(f"${i}" for i in range(1, count + 1))


def _values(record: Dict[str, Any], columns: List[str]) -> List[Any]:
    """Column values in order, with enumerations stored as their text value."""
    return [getattr(record[col], "value", record[col]) for col in columns]


class PostgresRepository(AssessmentRepository):
    """AssessmentRepository over PostgreSQL."""

    def __init__(self, pool: Optional[DatabasePool] = None):
        self._pool = pool

    async def _get_pool(self) -> DatabasePool:
        if self._pool is None:
            self._pool = await get_database_pool()
        return self._pool

    async def initialize(self) -> None:
        """Create tables if they do not exist."""
        pool = await self._get_pool()
        async with pool.acquire_connection() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Assessment schema ready")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()

    # Students

    async def create_student(self, student: Student) -> Student:
        pool = await self._get_pool()
        try:
            row = await pool.execute_query_one(
                """
                INSERT INTO students (id, teacher_id, name, age, grade, main_subjects, special_needs, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING *
                """,
                student.id, student.teacher_id, student.name, student.age, student.grade,
                student.main_subjects, student.special_needs, student.created_at
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateRecordError("Student", student.id) from e
        return row_to_model(row, Student)

    async def get_student(self, student_id: str) -> Optional[Student]:
        pool = await self._get_pool()
        row = await pool.execute_query_one("SELECT * FROM students WHERE id = $1", student_id)
        return row_to_model(row, Student)

    async def list_students(self, teacher_id: Optional[str] = None) -> List[Student]:
        pool = await self._get_pool()
        if teacher_id is None:
            rows = await pool.execute_query("SELECT * FROM students ORDER BY created_at")
        else:
            rows = await pool.execute_query(
                "SELECT * FROM students WHERE teacher_id = $1 ORDER BY created_at", teacher_id
            )
        return rows_to_models(rows, Student)

    async def update_student(self, student_id: str, changes: Dict[str, Any]) -> Student:
        current = await self.get_student(student_id)
        if current is None:
            raise StudentNotFoundError(student_id)

        data = current.model_dump()
        data.update({k: v for k, v in changes.items() if k in STUDENT_UPDATABLE_FIELDS})
        updated = Student.model_validate(data)

        columns = sorted(STUDENT_UPDATABLE_FIELDS)
        assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(columns, start=2))
        pool = await self._get_pool()
        row = await pool.execute_query_one(
            f"UPDATE students SET {assignments}, updated_at = now() WHERE id = $1 RETURNING *",
            student_id, *[getattr(updated, col) for col in columns]
        )
        if row is None:
            raise StudentNotFoundError(student_id)
        return row_to_model(row, Student)

    async def delete_student(self, student_id: str) -> bool:
        pool = await self._get_pool()
        status = await pool.execute_command("DELETE FROM students WHERE id = $1", student_id)
        return status.endswith(" 1")

    # Teacher perspectives

    async def save_perspective(self, perspective: TeacherPerspective) -> TeacherPerspective:
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in PERSPECTIVE_COLUMNS[2:])
        pool = await self._get_pool()
        row = await pool.execute_query_one(
            f"""
            INSERT INTO teacher_perspectives ({", ".join(PERSPECTIVE_COLUMNS)})
            VALUES ({_placeholders(len(PERSPECTIVE_COLUMNS))})
            ON CONFLICT (student_id) DO UPDATE SET {updates}
            RETURNING *
            """,
            *_values(perspective.model_dump(), PERSPECTIVE_COLUMNS)
        )
        return row_to_perspective(row)

    async def get_perspective(self, student_id: str) -> Optional[TeacherPerspective]:
        pool = await self._get_pool()
        row = await pool.execute_query_one(
            "SELECT * FROM teacher_perspectives WHERE student_id = $1", student_id
        )
        return row_to_perspective(row)

    async def list_perspectives(self, student_ids: Optional[Iterable[str]] = None) -> List[TeacherPerspective]:
        pool = await self._get_pool()
        if student_ids is None:
            rows = await pool.execute_query("SELECT * FROM teacher_perspectives")
        else:
            rows = await pool.execute_query(
                "SELECT * FROM teacher_perspectives WHERE student_id = ANY($1::text[])", list(student_ids)
            )
        return [row_to_perspective(row) for row in rows]

    # Evidence and analyses

    async def add_evidence(self, evidence: Evidence) -> Evidence:
        record = evidence.model_dump()
        record["is_analyzed"] = False
        pool = await self._get_pool()
        try:
            row = await pool.execute_query_one(
                f"""
                INSERT INTO evidence ({", ".join(EVIDENCE_COLUMNS)})
                VALUES ({_placeholders(len(EVIDENCE_COLUMNS))})
                RETURNING *
                """,
                *_values(record, EVIDENCE_COLUMNS)
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateRecordError("Evidence", evidence.id) from e
        return row_to_model(row, Evidence)

    async def get_evidence(self, evidence_id: str) -> Optional[Evidence]:
        pool = await self._get_pool()
        row = await pool.execute_query_one("SELECT * FROM evidence WHERE id = $1", evidence_id)
        return row_to_model(row, Evidence)

    async def list_evidence(self, student_id: Optional[str] = None) -> List[Evidence]:
        pool = await self._get_pool()
        if student_id is None:
            rows = await pool.execute_query("SELECT * FROM evidence ORDER BY created_at DESC")
        else:
            rows = await pool.execute_query(
                "SELECT * FROM evidence WHERE student_id = $1 ORDER BY created_at DESC", student_id
            )
        return rows_to_models(rows, Evidence)

    async def attach_analysis(self, result: AnalysisResult) -> Evidence:
        pool = await self._get_pool()
        async with pool.transaction() as conn:
            row = await conn.fetchrow(
                "UPDATE evidence SET is_analyzed = true WHERE id = $1 AND is_analyzed = false RETURNING *",
                result.evidence_id
            )
            if row is None:
                exists = await conn.fetchval("SELECT 1 FROM evidence WHERE id = $1", result.evidence_id)
                if exists is None:
                    raise EvidenceNotFoundError(result.evidence_id)
                raise EvidenceAlreadyAnalyzedError(result.evidence_id)

            await conn.execute(
                f"""
                INSERT INTO analysis_results ({", ".join(ANALYSIS_COLUMNS)})
                VALUES ({_placeholders(len(ANALYSIS_COLUMNS))})
                """,
                *_values(result.model_dump(), ANALYSIS_COLUMNS)
            )
        return row_to_model(row, Evidence)

    async def get_analysis(self, evidence_id: str) -> Optional[AnalysisResult]:
        pool = await self._get_pool()
        row = await pool.execute_query_one(
            "SELECT * FROM analysis_results WHERE evidence_id = $1", evidence_id
        )
        return row_to_model(row, AnalysisResult)

    async def list_analyzed(self, student_id: str) -> List[AnalyzedEvidence]:
        pool = await self._get_pool()
        evidence_select = ", ".join(f"e.{col} AS e_{col}" for col in EVIDENCE_COLUMNS)
        analysis_select = ", ".join(f"a.{col} AS a_{col}" for col in ANALYSIS_COLUMNS)
        rows = await pool.execute_query(
            f"""
            SELECT {evidence_select}, {analysis_select}
            FROM evidence e
            JOIN analysis_results a ON a.evidence_id = e.id
            WHERE e.student_id = $1 AND e.is_analyzed
            ORDER BY e.created_at
            """,
            student_id
        )
        return [
            AnalyzedEvidence(
                evidence=Evidence.model_validate({col: row[f"e_{col}"] for col in EVIDENCE_COLUMNS}),
                analysis=AnalysisResult.model_validate({col: row[f"a_{col}"] for col in ANALYSIS_COLUMNS})
            )
            for row in rows
        ]

    # Learning profiles

    async def save_learning_profile(self, profile: LearningProfile) -> LearningProfile:
        updates = ", ".join(
            f"{col} = EXCLUDED.{col}" for col in PROFILE_COLUMNS
            if col not in ("id", "student_id", "updated_at")
        )
        pool = await self._get_pool()
        row = await pool.execute_query_one(
            f"""
            INSERT INTO learning_profiles ({", ".join(PROFILE_COLUMNS)})
            VALUES ({_placeholders(len(PROFILE_COLUMNS))})
            ON CONFLICT (student_id) DO UPDATE SET {updates}, updated_at = now()
            RETURNING *
            """,
            *_values(profile.model_dump(), PROFILE_COLUMNS)
        )
        return row_to_model(row, LearningProfile)

    async def get_learning_profile(self, student_id: str) -> Optional[LearningProfile]:
        pool = await self._get_pool()
        row = await pool.execute_query_one(
            "SELECT * FROM learning_profiles WHERE student_id = $1", student_id
        )
        return row_to_model(row, LearningProfile)

    async def count_learning_profiles(self, student_ids: Optional[Iterable[str]] = None) -> int:
        pool = await self._get_pool()
        if student_ids is None:
            row = await pool.execute_query_one("SELECT count(*) AS n FROM learning_profiles")
        else:
            row = await pool.execute_query_one(
                "SELECT count(*) AS n FROM learning_profiles WHERE student_id = ANY($1::text[])",
                list(student_ids)
            )
        return row["n"]
