"""
Tests for the assessment repositories.

The in-memory repository is exercised end to end; the PostgreSQL repository
is checked against a mocked connection pool.
"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from learning_profiles.analysis import analyze_evidence, generate_profile
from learning_profiles.database import InMemoryRepository, PostgresRepository
from learning_profiles.errors import (
    DuplicateRecordError,
    EvidenceAlreadyAnalyzedError,
    EvidenceNotFoundError,
    StudentNotFoundError,
)
from learning_profiles.models import Evidence, Student, TeacherPerspective


@pytest.fixture
def repository():
    return InMemoryRepository()


class TestInMemoryStudents:

    @pytest.mark.asyncio
    async def test_create_and_get(self, repository, student):
        await repository.create_student(student)

        stored = await repository.get_student(student.id)

        assert stored == student
        assert stored is not student

    @pytest.mark.asyncio
    async def test_list_by_teacher(self, repository, student):
        other = Student(teacher_id="teacher-2", name="Pablo", age=11, grade="6º", main_subjects="Historia")
        await repository.create_student(student)
        await repository.create_student(other)

        assert [s.id for s in await repository.list_students("teacher-1")] == [student.id]
        assert len(await repository.list_students()) == 2

    @pytest.mark.asyncio
    async def test_create_with_existing_id(self, repository, student):
        await repository.create_student(student)

        with pytest.raises(DuplicateRecordError, match="Student student-1 already exists"):
            await repository.create_student(student.model_copy(update={"name": "Otra", "teacher_id": "teacher-2"}))

        stored = await repository.get_student(student.id)
        assert stored.name == "Ana López"
        assert stored.teacher_id == "teacher-1"

    @pytest.mark.asyncio
    async def test_update_student(self, repository, student):
        await repository.create_student(student)

        updated = await repository.update_student(student.id, {"grade": "5º Primaria", "id": "hijacked"})

        assert updated.id == student.id
        assert updated.grade == "5º Primaria"
        assert updated.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_missing_student(self, repository):
        with pytest.raises(StudentNotFoundError, match="Student nobody not found"):
            await repository.update_student("nobody", {"name": "X"})

    @pytest.mark.asyncio
    async def test_delete_cascades(self, repository, student, visual_perspective, image_evidence, scoring_config):
        await repository.create_student(student)
        await repository.save_perspective(visual_perspective)
        await repository.add_evidence(image_evidence)
        analysis = analyze_evidence(image_evidence, visual_perspective, config=scoring_config)
        await repository.attach_analysis(analysis)

        assert await repository.delete_student(student.id) is True

        assert await repository.get_student(student.id) is None
        assert await repository.get_perspective(student.id) is None
        assert await repository.get_evidence(image_evidence.id) is None
        assert await repository.get_analysis(image_evidence.id) is None
        assert await repository.delete_student(student.id) is False


class TestInMemoryPerspectives:

    @pytest.mark.asyncio
    async def test_save_replaces_but_keeps_id(self, repository, student, visual_perspective):
        first = await repository.save_perspective(visual_perspective)

        replacement = TeacherPerspective(student_id=student.id, attention_level="Baja")
        second = await repository.save_perspective(replacement)

        assert second.id == first.id
        stored = await repository.get_perspective(student.id)
        assert stored.attention_level.value == "Baja"
        assert stored.preferred_modality is None
        assert len(await repository.list_perspectives()) == 1

    @pytest.mark.asyncio
    async def test_list_filtered_by_students(self, repository, visual_perspective):
        await repository.save_perspective(visual_perspective)
        await repository.save_perspective(TeacherPerspective(student_id="other"))

        perspectives = await repository.list_perspectives([visual_perspective.student_id])

        assert [p.student_id for p in perspectives] == [visual_perspective.student_id]


class TestInMemoryEvidence:

    @pytest.mark.asyncio
    async def test_new_evidence_is_not_analyzed(self, repository, student):
        evidence = Evidence(student_id=student.id, task_title="T", subject="S", is_analyzed=True)

        stored = await repository.add_evidence(evidence)

        assert stored.is_analyzed is False

    @pytest.mark.asyncio
    async def test_attach_analysis_latches(self, repository, image_evidence, scoring_config):
        await repository.add_evidence(image_evidence)
        analysis = analyze_evidence(image_evidence, None, config=scoring_config)

        evidence = await repository.attach_analysis(analysis)
        assert evidence.is_analyzed is True
        assert await repository.get_analysis(image_evidence.id) == analysis

        with pytest.raises(EvidenceAlreadyAnalyzedError):
            await repository.attach_analysis(analyze_evidence(image_evidence, None, config=scoring_config))
        assert (await repository.get_analysis(image_evidence.id)).id == analysis.id

    @pytest.mark.asyncio
    async def test_readding_analyzed_evidence_keeps_latch(self, repository, image_evidence, scoring_config):
        await repository.add_evidence(image_evidence)
        analysis = analyze_evidence(image_evidence, None, config=scoring_config)
        await repository.attach_analysis(analysis)

        with pytest.raises(DuplicateRecordError):
            await repository.add_evidence(image_evidence)

        assert (await repository.get_evidence(image_evidence.id)).is_analyzed is True
        with pytest.raises(EvidenceAlreadyAnalyzedError):
            await repository.attach_analysis(analyze_evidence(image_evidence, None, config=scoring_config))
        assert (await repository.get_analysis(image_evidence.id)).id == analysis.id

    @pytest.mark.asyncio
    async def test_attach_analysis_to_missing_evidence(self, repository, image_evidence, scoring_config):
        with pytest.raises(EvidenceNotFoundError):
            await repository.attach_analysis(analyze_evidence(image_evidence, None, config=scoring_config))

    @pytest.mark.asyncio
    async def test_concurrent_attach_has_one_winner(self, repository, image_evidence, scoring_config):
        await repository.add_evidence(image_evidence)
        analyses = [analyze_evidence(image_evidence, None, config=scoring_config) for _ in range(5)]

        outcomes = await asyncio.gather(
            *(repository.attach_analysis(a) for a in analyses), return_exceptions=True
        )

        assert sum(1 for o in outcomes if isinstance(o, Evidence)) == 1
        assert sum(1 for o in outcomes if isinstance(o, EvidenceAlreadyAnalyzedError)) == 4

    @pytest.mark.asyncio
    async def test_list_analyzed_pairs_results(self, repository, image_evidence, text_evidence, scoring_config):
        await repository.add_evidence(image_evidence)
        await repository.add_evidence(text_evidence)
        await repository.attach_analysis(analyze_evidence(image_evidence, None, config=scoring_config))

        analyzed = await repository.list_analyzed(image_evidence.student_id)

        assert [item.evidence.id for item in analyzed] == [image_evidence.id]
        assert analyzed[0].analysis.evidence_id == image_evidence.id
        assert len(await repository.list_evidence(image_evidence.student_id)) == 2


class TestInMemoryProfiles:

    @pytest.mark.asyncio
    async def test_upsert_keeps_one_profile_per_student(self, repository, student, image_evidence, scoring_config):
        analysis = analyze_evidence(image_evidence, None, config=scoring_config)
        pairs = [(image_evidence, analysis)]

        first = await repository.save_learning_profile(generate_profile(student, None, pairs, config=scoring_config))
        second = await repository.save_learning_profile(generate_profile(student, None, pairs, config=scoring_config))

        assert second.id == first.id
        assert first.updated_at is None
        assert second.updated_at is not None
        assert await repository.count_learning_profiles() == 1
        assert await repository.count_learning_profiles(["someone-else"]) == 0


def fake_pool(row=None, fetchrow=None, fetchval=None):
    """Pool double exposing the DatabasePool methods PostgresRepository uses."""
    pool = MagicMock()
    pool.execute_query_one = AsyncMock(return_value=row)
    pool.execute_query = AsyncMock(return_value=[])
    pool.execute_command = AsyncMock(return_value="DELETE 1")

    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value=fetchrow)
    conn.fetchval = AsyncMock(return_value=fetchval)
    conn.execute = AsyncMock()

    @asynccontextmanager
    async def transaction():
        yield conn

    pool.transaction = transaction
    return pool, conn


class TestPostgresRepository:

    @pytest.mark.asyncio
    async def test_save_learning_profile_upserts(self, student, image_evidence, scoring_config):
        profile = generate_profile(
            student, None, [(image_evidence, analyze_evidence(image_evidence, None, config=scoring_config))],
            config=scoring_config
        )
        pool, _ = fake_pool(row=profile.model_dump())
        repository = PostgresRepository(pool)

        saved = await repository.save_learning_profile(profile)

        assert saved == profile
        sql = pool.execute_query_one.call_args.args[0]
        assert "ON CONFLICT (student_id) DO UPDATE" in sql

    @pytest.mark.asyncio
    async def test_save_perspective_stores_enum_values(self, visual_perspective):
        pool, _ = fake_pool(row=visual_perspective.model_dump())
        repository = PostgresRepository(pool)

        saved = await repository.save_perspective(visual_perspective)

        assert saved == visual_perspective
        args = pool.execute_query_one.call_args.args[1:]
        assert "Alta" in args
        assert "Visual" in args

    @pytest.mark.asyncio
    async def test_attach_analysis_on_analyzed_evidence(self, image_evidence, scoring_config):
        pool, conn = fake_pool(fetchrow=None, fetchval=1)
        repository = PostgresRepository(pool)

        with pytest.raises(EvidenceAlreadyAnalyzedError):
            await repository.attach_analysis(analyze_evidence(image_evidence, None, config=scoring_config))
        conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_attach_analysis_on_missing_evidence(self, image_evidence, scoring_config):
        pool, _ = fake_pool(fetchrow=None, fetchval=None)
        repository = PostgresRepository(pool)

        with pytest.raises(EvidenceNotFoundError):
            await repository.attach_analysis(analyze_evidence(image_evidence, None, config=scoring_config))

    @pytest.mark.asyncio
    async def test_attach_analysis_inserts_result(self, image_evidence, scoring_config):
        analyzed_row = {**image_evidence.model_dump(), "is_analyzed": True}
        pool, conn = fake_pool(fetchrow=analyzed_row)
        repository = PostgresRepository(pool)

        evidence = await repository.attach_analysis(analyze_evidence(image_evidence, None, config=scoring_config))

        assert evidence.is_analyzed is True
        assert "INSERT INTO analysis_results" in conn.execute.call_args.args[0]

    @pytest.mark.asyncio
    async def test_delete_student(self):
        pool, _ = fake_pool()
        repository = PostgresRepository(pool)

        assert await repository.delete_student("student-1") is True
        pool.execute_command.return_value = "DELETE 0"
        assert await repository.delete_student("student-1") is False

    @pytest.mark.asyncio
    async def test_duplicate_evidence_id(self, image_evidence):
        pool, _ = fake_pool()
        pool.execute_query_one.side_effect = asyncpg.UniqueViolationError("duplicate key")
        repository = PostgresRepository(pool)

        with pytest.raises(DuplicateRecordError, match="Evidence evidence-image already exists"):
            await repository.add_evidence(image_evidence)

    @pytest.mark.asyncio
    async def test_duplicate_student_id(self, student):
        pool, _ = fake_pool()
        pool.execute_query_one.side_effect = asyncpg.UniqueViolationError("duplicate key")
        repository = PostgresRepository(pool)

        with pytest.raises(DuplicateRecordError):
            await repository.create_student(student)
