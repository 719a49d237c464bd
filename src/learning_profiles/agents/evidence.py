"""
Evidence analysis agent.

Scores and narrates a single evidence item. The heuristic engine is always
available; when an LLM client is configured and requested, the model's JSON
assessment is validated and adapted into the same AnalysisResult shape, and
any failure on that path falls back to the heuristic result.
"""

import json
import logging
import math
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, validator

from ..analysis import analyze_evidence
from ..analysis import narratives
from ..analysis.scoring import classify_competency
from ..config import ScoringConfig, settings
from ..errors import MalformedAssessmentError
from ..models import AnalysisResult, AnalysisSource, Evidence, TeacherPerspective
from ..utils.llm import LLMError, LLMResponse, extract_json
from .base import AgentResult, BaseAgent


logger = logging.getLogger(__name__)


class EvidenceAnalysisInput(BaseModel):
    """Input data for evidence analysis."""
    evidence: Evidence
    perspective: Optional[TeacherPerspective] = None
    content: Optional[str] = None  # text extracted from the uploaded artifact
    use_llm: bool = False


class LLMEvidenceAssessment(BaseModel):
    """JSON assessment returned by the evaluator prompt."""
    adapted_score: float = Field(alias="adaptedScore")
    competency_level: Optional[str] = Field(None, alias="competencyLevel")
    task_compliance: Optional[str] = Field(None, alias="taskCompliance")
    technical_quality: Optional[str] = Field(None, alias="technicalQuality")
    content_understanding: Optional[str] = Field(None, alias="contentUnderstanding")
    observed_skills: Optional[str] = Field(None, alias="observedSkills")
    identified_weaknesses: Optional[str] = Field(None, alias="identifiedWeaknesses")
    evidence_specific_findings: Optional[str] = Field(None, alias="evidenceSpecificFindings")
    score_justification: Optional[str] = Field(None, alias="scoreJustification")
    improvement_suggestions: Optional[str] = Field(None, alias="improvementSuggestions")
    modality_used_in_task: Optional[str] = Field(None, alias="modalityUsedInTask")

    class Config:
        populate_by_name = True

    @validator("adapted_score")
    def validate_finite(cls, v):
        if not math.isfinite(v):
            raise ValueError("adaptedScore must be a finite number")
        return v


def parse_llm_assessment(content: str) -> LLMEvidenceAssessment:
    """
    Parse the evaluator's response text.

    Raises:
        MalformedAssessmentError: If no JSON object is present or it fails validation
    """
    json_str = extract_json(content or "")
    if json_str is None:
        raise MalformedAssessmentError("LLM response did not contain a JSON object")
    try:
        return LLMEvidenceAssessment.model_validate(json.loads(json_str))
    except (json.JSONDecodeError, ValidationError) as e:
        raise MalformedAssessmentError(f"LLM assessment failed validation: {e}") from e


def _first_text(*parts: Optional[str]) -> Optional[str]:
    texts = [part.strip() for part in parts if part and part.strip()]
    return ". ".join(texts) or None


def adapt_llm_assessment(
    evidence: Evidence,
    perspective: Optional[TeacherPerspective],
    assessment: LLMEvidenceAssessment,
    config: Optional[ScoringConfig] = None
) -> AnalysisResult:
    """
    Map an LLM assessment onto an AnalysisResult.

    The score is clamped to the configured range and the competency level is
    recomputed from it; narrative fields the model left empty use the
    heuristic text.
    """
    config = config or settings.scoring
    score = min(config.max_score, max(config.min_score, assessment.adapted_score))
    level = classify_competency(score)

    if assessment.competency_level and assessment.competency_level.strip() != level.value:
        logger.debug(
            "LLM competency level disagrees with its score",
            extra={"evidence_id": evidence.id, "reported": assessment.competency_level, "derived": level.value}
        )

    return AnalysisResult(
        evidence_id=evidence.id,
        adapted_score=score,
        competency_level=level,
        identified_strengths=_first_text(assessment.observed_skills, assessment.content_understanding)
        or narratives.generate_strengths(evidence, perspective),
        improvement_areas=_first_text(assessment.identified_weaknesses, assessment.technical_quality)
        or narratives.generate_improvement_areas(evidence, perspective),
        successful_modalities=_first_text(assessment.modality_used_in_task)
        or narratives.determine_successful_modalities(evidence, perspective),
        pedagogical_recommendations=_first_text(assessment.improvement_suggestions)
        or narratives.generate_pedagogical_recommendations(evidence, perspective),
        suggested_adaptations=narratives.generate_suggested_adaptations(evidence, perspective),
        evaluation_justification=_first_text(
            assessment.score_justification,
            assessment.task_compliance,
            assessment.evidence_specific_findings
        ) or narratives.generate_justification(evidence, perspective, score),
        analysis_source=AnalysisSource.LLM
    )


class EvidenceAnalysisAgent(BaseAgent):
    """
    Agent that produces the AnalysisResult for one evidence item.

    Responsibilities:
    - Run the heuristic scoring, classification and narrative engine
    - Optionally request an LLM assessment and adapt it to the same shape
    - Fall back to the heuristic result when the LLM path fails
    """

    def __init__(self, scoring_config: Optional[ScoringConfig] = None, **kwargs):
        super().__init__(**kwargs)
        self.scoring_config = scoring_config or settings.scoring

    @property
    def agent_type(self) -> str:
        return "EvidenceAnalysisAgent"

    @property
    def role_description(self) -> str:
        return "Score a student's evidence against their teacher perspective and describe the result"

    async def execute(self, analysis_input: Optional[EvidenceAnalysisInput] = None, **kwargs) -> AgentResult:
        """
        Analyze one evidence item.

        Args:
            analysis_input: Evidence, optional perspective and LLM options

        Returns:
            AgentResult whose data holds the analysis_result
        """
        start_time = time.time()

        if analysis_input is None:
            return self._result(False, error="No evidence provided for analysis", start_time=start_time)

        evidence = analysis_input.evidence
        perspective = analysis_input.perspective

        try:
            self.logger.info(f"Analyzing evidence {evidence.id}", extra={
                "evidence_id": evidence.id,
                "evidence_type": evidence.evidence_type.value,
                "has_perspective": perspective is not None
            })

            metadata: Dict[str, Any] = {"evidence_id": evidence.id}
            result = None

            if analysis_input.use_llm:
                if self.llm_client is None:
                    metadata["fallback_reason"] = "No LLM client configured"
                else:
                    try:
                        result = await self._analyze_with_llm(analysis_input)
                    except (LLMError, MalformedAssessmentError) as e:
                        self.logger.warning(
                            f"LLM analysis failed for evidence {evidence.id}, using heuristic: {e}",
                            extra={"evidence_id": evidence.id, "error_type": type(e).__name__}
                        )
                        metadata["fallback_reason"] = str(e)

                if result is None and self.metrics:
                    self.metrics.fallback_count += 1

            if result is None:
                result = analyze_evidence(evidence, perspective, config=self.scoring_config)

            metadata.update({
                "analysis_source": result.analysis_source.value,
                "adapted_score": result.adapted_score,
                "competency_level": result.competency_level.value
            })

            return self._result(
                True,
                data={"analysis_result": result.model_dump()},
                start_time=start_time,
                **metadata
            )

        except Exception as e:
            self.logger.error(f"Failed to analyze evidence {evidence.id}: {e}", exc_info=True)
            return self._result(
                False,
                error=str(e),
                start_time=start_time,
                error_type=type(e).__name__,
                evidence_id=evidence.id
            )

    async def _analyze_with_llm(self, analysis_input: EvidenceAnalysisInput) -> AnalysisResult:
        evidence = analysis_input.evidence
        prompt = await self.render_prompt("evidence_analysis", self._prompt_variables(analysis_input))

        response = await self.llm_call(prompt, metadata={"evidence_id": evidence.id})
        content = response.content if isinstance(response, LLMResponse) else str(response)

        assessment = parse_llm_assessment(content)
        return adapt_llm_assessment(evidence, analysis_input.perspective, assessment, self.scoring_config)

    def _prompt_variables(self, analysis_input: EvidenceAnalysisInput) -> Dict[str, Any]:
        evidence = analysis_input.evidence
        variables = {
            "task_title": evidence.task_title,
            "evidence_type": evidence.evidence_type.value,
            "subject": evidence.subject,
            "has_perspective": "Sí" if analysis_input.perspective is not None else "No",
        }
        rubric = evidence.standard_rubric or evidence.original_instructions
        if rubric:
            variables["rubric"] = rubric
        if evidence.evaluated_competencies:
            variables["competencies"] = evidence.evaluated_competencies
        if evidence.time_spent:
            variables["time_spent"] = f"{evidence.time_spent} minutos"
        if analysis_input.content:
            variables["content"] = analysis_input.content
        return variables
