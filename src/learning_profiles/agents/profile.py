"""
Learning profile agent.

Aggregates a student's analyzed evidence and teacher perspective into a
LearningProfile through the heuristic aggregator.
"""

import time
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..analysis import generate_profile
from ..config import ScoringConfig, settings
from ..errors import NoAnalyzedEvidenceError
from ..models import AnalyzedEvidence, Student, TeacherPerspective
from .base import AgentResult, BaseAgent


class LearningProfileInput(BaseModel):
    """Input data for learning profile generation."""
    student: Student
    perspective: Optional[TeacherPerspective] = None
    analyzed_evidence: List[AnalyzedEvidence] = Field(default_factory=list)
    generated_at: Optional[datetime] = None


class LearningProfileAgent(BaseAgent):
    """
    Agent that builds a student's learning profile.

    Responsibilities:
    - Reject students without analyzed evidence
    - Derive pattern, abilities, needs, strategies, instruments, materials and plan
    - Report evidence count and confidence
    """

    def __init__(self, scoring_config: Optional[ScoringConfig] = None, **kwargs):
        super().__init__(**kwargs)
        self.scoring_config = scoring_config or settings.scoring

    @property
    def agent_type(self) -> str:
        return "LearningProfileAgent"

    @property
    def role_description(self) -> str:
        return "Summarise a student's analyzed evidence into a learning profile"

    async def execute(self, profile_input: Optional[LearningProfileInput] = None, **kwargs) -> AgentResult:
        start_time = time.time()

        if profile_input is None:
            return self._result(False, error="No student provided for profile generation", start_time=start_time)

        student = profile_input.student
        try:
            profile = generate_profile(
                student,
                profile_input.perspective,
                profile_input.analyzed_evidence,
                generated_at=profile_input.generated_at,
                config=self.scoring_config
            )
        except NoAnalyzedEvidenceError as e:
            self.logger.warning(str(e), extra={"student_id": student.id})
            return self._result(
                False,
                error=str(e),
                start_time=start_time,
                error_type=type(e).__name__,
                student_id=student.id
            )
        except Exception as e:
            self.logger.error(f"Failed to generate profile for student {student.id}: {e}", exc_info=True)
            return self._result(
                False,
                error=str(e),
                start_time=start_time,
                error_type=type(e).__name__,
                student_id=student.id
            )

        self.logger.info(
            f"Generated learning profile for student {student.id}",
            extra={"student_id": student.id, "evidence_count": profile.evidence_count}
        )

        return self._result(
            True,
            data={"learning_profile": profile.model_dump()},
            start_time=start_time,
            student_id=student.id,
            evidence_count=profile.evidence_count,
            confidence_level=profile.confidence_level
        )
