"""Assessment agents built on a shared async base."""

from .base import AgentConfig, AgentResult, AgentStatus, BaseAgent
from .chat import StudentChatAgent, StudentContext, build_student_context
from .evidence import (
    EvidenceAnalysisAgent,
    EvidenceAnalysisInput,
    LLMEvidenceAssessment,
    adapt_llm_assessment,
    parse_llm_assessment,
)
from .profile import LearningProfileAgent, LearningProfileInput
from .templates import PromptTemplate, PromptVariable, TemplateManager, get_template_manager

__all__ = [
    "AgentConfig",
    "AgentResult",
    "AgentStatus",
    "BaseAgent",
    "EvidenceAnalysisAgent",
    "EvidenceAnalysisInput",
    "LLMEvidenceAssessment",
    "adapt_llm_assessment",
    "parse_llm_assessment",
    "LearningProfileAgent",
    "LearningProfileInput",
    "StudentChatAgent",
    "StudentContext",
    "build_student_context",
    "PromptTemplate",
    "PromptVariable",
    "TemplateManager",
    "get_template_manager",
]
