"""
Tests for the LearningProfileAgent.
"""

import pytest

from learning_profiles.agents import LearningProfileAgent, LearningProfileInput
from learning_profiles.analysis import analyze_evidence
from learning_profiles.models import AnalyzedEvidence, LearningProfile


class TestLearningProfileAgent:
    """Test suite for LearningProfileAgent."""

    @pytest.fixture
    def agent(self, scoring_config):
        return LearningProfileAgent(agent_id="test_profile_agent", scoring_config=scoring_config)

    @pytest.fixture
    def analyzed(self, image_evidence, visual_perspective, scoring_config):
        analysis = analyze_evidence(image_evidence, visual_perspective, config=scoring_config)
        return [AnalyzedEvidence(evidence=image_evidence, analysis=analysis)]

    def test_agent_properties(self, agent):
        assert agent.agent_type == "LearningProfileAgent"
        assert "learning profile" in agent.role_description

    @pytest.mark.asyncio
    async def test_generates_profile(self, agent, student, visual_perspective, analyzed, fixed_time):
        result = await agent.execute(LearningProfileInput(
            student=student,
            perspective=visual_perspective,
            analyzed_evidence=analyzed,
            generated_at=fixed_time
        ))

        assert result.success
        profile = LearningProfile.model_validate(result.data["learning_profile"])
        assert profile.student_id == student.id
        assert profile.generated_at == fixed_time
        assert profile.evidence_count == 1
        assert result.metadata["evidence_count"] == 1
        assert result.metadata["confidence_level"] == 0.6

    @pytest.mark.asyncio
    async def test_no_analyzed_evidence(self, agent, student, visual_perspective):
        result = await agent.execute(LearningProfileInput(student=student, perspective=visual_perspective))

        assert not result.success
        assert "No evidence available" in result.error
        assert result.metadata["error_type"] == "NoAnalyzedEvidenceError"
        assert result.metadata["student_id"] == student.id

    @pytest.mark.asyncio
    async def test_missing_input(self, agent):
        result = await agent.execute()

        assert not result.success
        assert result.error == "No student provided for profile generation"

    @pytest.mark.asyncio
    async def test_execute_with_tracking_reports_failure_status(self, agent, student):
        result = await agent.execute_with_tracking(profile_input=LearningProfileInput(student=student))

        assert not result.success
        assert agent.status.value == "failed"
