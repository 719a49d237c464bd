"""
Assessment service coordinating repositories and agents.

This module implements the operations a teacher-facing application calls:
student and perspective management, evidence intake, per-evidence analysis,
learning profile generation, dashboard statistics and student chat.
"""

import asyncio
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, Field, validator

from ..agents import (
    AgentConfig,
    EvidenceAnalysisAgent,
    EvidenceAnalysisInput,
    LearningProfileAgent,
    LearningProfileInput,
    StudentChatAgent,
    StudentContext,
)
from ..config import ScoringConfig, settings
from ..database.repositories import AssessmentRepository
from ..errors import (
    AssessmentError,
    EvidenceAlreadyAnalyzedError,
    EvidenceNotFoundError,
    NoAnalyzedEvidenceError,
    StudentNotFoundError,
)
from ..models import (
    AnalysisResult,
    DashboardStats,
    Evidence,
    LearningProfile,
    Student,
    TeacherPerspective,
)
from ..models.database import utc_now
from ..models.utils import build_dashboard_stats
from ..utils.llm import LLMClient


logger = logging.getLogger(__name__)


class ServiceConfig(BaseModel):
    """Configuration for the assessment service."""

    max_concurrent_analyses: int = 5
    use_llm_analysis: bool = Field(default_factory=lambda: settings.llm.use_llm_analysis)

    evidence_agent_config: AgentConfig = Field(default_factory=AgentConfig)
    profile_agent_config: AgentConfig = Field(default_factory=AgentConfig)
    chat_agent_config: AgentConfig = Field(default_factory=lambda: AgentConfig(llm_temperature=0.7))

    class Config:
        arbitrary_types_allowed = True

    @validator("max_concurrent_analyses")
    def validate_concurrency_limit(cls, v):
        if v < 1 or v > 50:
            raise ValueError("Concurrency limit must be between 1 and 50")
        return v


class AssessmentService:
    """
    Runs the assessment operations against a repository.

    Typed errors (StudentNotFoundError, EvidenceNotFoundError,
    EvidenceAlreadyAnalyzedError, DuplicateRecordError, NoAnalyzedEvidenceError)
    propagate to the caller; agent failures surface as AssessmentError.
    """

    def __init__(
        self,
        repository: AssessmentRepository,
        llm_client: Optional[LLMClient] = None,
        config: Optional[ServiceConfig] = None,
        scoring_config: Optional[ScoringConfig] = None
    ):
        self.repository = repository
        self.llm_client = llm_client
        self.config = config or ServiceConfig()
        self.scoring_config = scoring_config or settings.scoring

        self.evidence_agent = EvidenceAnalysisAgent(
            llm_client=llm_client,
            config=self.config.evidence_agent_config,
            scoring_config=self.scoring_config
        )
        self.profile_agent = LearningProfileAgent(
            llm_client=llm_client,
            config=self.config.profile_agent_config,
            scoring_config=self.scoring_config
        )
        self.chat_agent = StudentChatAgent(
            llm_client=llm_client,
            config=self.config.chat_agent_config
        )

    # Students

    async def register_student(
        self,
        student: Student,
        perspective: Optional[TeacherPerspective] = None
    ) -> Student:
        """Create a student, optionally with their teacher perspective."""
        created = await self.repository.create_student(student)
        if perspective is not None:
            await self.repository.save_perspective(
                perspective.model_copy(update={"student_id": created.id})
            )

        logger.info(f"Registered student {created.id}", extra={
            "student_id": created.id,
            "teacher_id": created.teacher_id,
            "has_perspective": perspective is not None
        })
        return created

    async def get_student(self, student_id: str) -> Student:
        student = await self.repository.get_student(student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        return student

    async def list_students(self, teacher_id: Optional[str] = None) -> List[Student]:
        return await self.repository.list_students(teacher_id)

    async def update_student(self, student_id: str, **changes: Any) -> Student:
        return await self.repository.update_student(student_id, changes)

    async def delete_student(self, student_id: str) -> None:
        if not await self.repository.delete_student(student_id):
            raise StudentNotFoundError(student_id)

    # Teacher perspectives

    async def save_perspective(self, student_id: str, perspective: TeacherPerspective) -> TeacherPerspective:
        """Create or replace the student's teacher perspective."""
        await self.get_student(student_id)
        return await self.repository.save_perspective(
            perspective.model_copy(update={"student_id": student_id})
        )

    async def get_perspective(self, student_id: str) -> Optional[TeacherPerspective]:
        return await self.repository.get_perspective(student_id)

    # Evidence

    async def add_evidence(self, evidence: Evidence) -> Evidence:
        await self.get_student(evidence.student_id)
        stored = await self.repository.add_evidence(evidence)
        logger.info(f"Added evidence {stored.id}", extra={
            "student_id": stored.student_id,
            "evidence_type": stored.evidence_type.value
        })
        return stored

    async def list_evidence(self, student_id: str) -> List[Evidence]:
        return await self.repository.list_evidence(student_id)

    async def analyze_evidence(
        self,
        evidence_id: str,
        content: Optional[str] = None,
        use_llm: Optional[bool] = None
    ) -> AnalysisResult:
        """
        Analyze one evidence item and attach the result.

        Raises:
            EvidenceNotFoundError: If the evidence does not exist
            EvidenceAlreadyAnalyzedError: If the evidence already has an analysis
        """
        evidence = await self.repository.get_evidence(evidence_id)
        if evidence is None:
            raise EvidenceNotFoundError(evidence_id)
        if evidence.is_analyzed:
            raise EvidenceAlreadyAnalyzedError(evidence_id)

        perspective = await self.repository.get_perspective(evidence.student_id)

        result = await self.evidence_agent.execute_with_tracking(
            analysis_input=EvidenceAnalysisInput(
                evidence=evidence,
                perspective=perspective,
                content=content,
                use_llm=self.config.use_llm_analysis if use_llm is None else use_llm
            )
        )
        if not result.success or not result.data:
            raise AssessmentError(f"Analysis of evidence {evidence_id} failed: {result.error}")

        analysis = AnalysisResult.model_validate(result.data["analysis_result"])
        await self.repository.attach_analysis(analysis)
        return analysis

    async def analyze_pending(self, student_id: str) -> List[AnalysisResult]:
        """Analyze every not-yet-analyzed evidence item of a student, concurrently."""
        await self.get_student(student_id)
        pending = [e for e in await self.repository.list_evidence(student_id) if not e.is_analyzed]
        if not pending:
            return []

        semaphore = asyncio.Semaphore(self.config.max_concurrent_analyses)

        async def analyze_one(evidence: Evidence) -> AnalysisResult:
            async with semaphore:
                return await self.analyze_evidence(evidence.id)

        results = await asyncio.gather(*(analyze_one(e) for e in pending), return_exceptions=True)

        analyses = []
        for evidence, outcome in zip(pending, results):
            if isinstance(outcome, AnalysisResult):
                analyses.append(outcome)
            elif isinstance(outcome, EvidenceAlreadyAnalyzedError):
                logger.info(f"Evidence {evidence.id} was analyzed concurrently, skipping")
            elif isinstance(outcome, Exception):
                logger.warning(f"Analysis of evidence {evidence.id} failed: {outcome}", extra={
                    "student_id": student_id,
                    "error_type": type(outcome).__name__
                })

        logger.info(f"Analyzed {len(analyses)}/{len(pending)} pending evidence", extra={"student_id": student_id})
        return analyses

    async def get_analysis(self, evidence_id: str) -> Optional[AnalysisResult]:
        return await self.repository.get_analysis(evidence_id)

    # Learning profiles

    async def generate_profile(self, student_id: str) -> LearningProfile:
        """
        Generate the student's learning profile and upsert it.

        Raises:
            StudentNotFoundError: If the student does not exist
            NoAnalyzedEvidenceError: If the student has no analyzed evidence
        """
        student = await self.get_student(student_id)
        analyzed = await self.repository.list_analyzed(student_id)
        if not analyzed:
            raise NoAnalyzedEvidenceError(student_id)

        perspective = await self.repository.get_perspective(student_id)

        result = await self.profile_agent.execute_with_tracking(
            profile_input=LearningProfileInput(
                student=student,
                perspective=perspective,
                analyzed_evidence=analyzed,
                generated_at=utc_now()
            )
        )
        if not result.success or not result.data:
            raise AssessmentError(f"Profile generation for student {student_id} failed: {result.error}")

        profile = LearningProfile.model_validate(result.data["learning_profile"])
        return await self.repository.save_learning_profile(profile)

    async def get_profile(self, student_id: str) -> Optional[LearningProfile]:
        return await self.repository.get_learning_profile(student_id)

    # Dashboard and chat

    async def dashboard_stats(self, teacher_id: Optional[str] = None) -> DashboardStats:
        """Counts, analysis progress and modality breakdown, optionally for one teacher."""
        students = await self.repository.list_students(teacher_id)
        student_ids = None if teacher_id is None else {s.id for s in students}

        evidence = await self.repository.list_evidence()
        if student_ids is not None:
            evidence = [e for e in evidence if e.student_id in student_ids]

        perspectives = await self.repository.list_perspectives(student_ids)
        profiles = await self.repository.count_learning_profiles(student_ids)

        return build_dashboard_stats(students, evidence, perspectives, profiles)

    async def ask_about_student(self, student_id: str, question: str) -> str:
        """Answer a teacher's question about a student using the student's records."""
        student = await self.get_student(student_id)
        context = StudentContext(
            student=student,
            perspective=await self.repository.get_perspective(student_id),
            profile=await self.repository.get_learning_profile(student_id),
            evidence=await self.repository.list_evidence(student_id),
            analyzed=await self.repository.list_analyzed(student_id)
        )

        result = await self.chat_agent.execute_with_tracking(context=context, question=question)
        if not result.success or not result.data:
            raise AssessmentError(result.error or "Chat agent returned no answer")
        return result.data["answer"]
