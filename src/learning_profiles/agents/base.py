"""
Base class for assessment agents.

Every agent (evidence analysis, learning profile, student chat) returns an
AgentResult envelope, renders its prompts through the shared TemplateManager
and records LLM usage and heuristic fallbacks in AgentMetrics.
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..utils.llm import LLMClient, LLMError, LLMResponse
from .templates import TemplateManager, get_template_manager


logger = logging.getLogger(__name__)


class AgentStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class AgentMetrics:
    """Counters for one agent instance, accumulated across executions."""
    total_llm_calls: int = 0
    total_llm_tokens: int = 0
    total_latency_ms: float = 0.0
    error_count: int = 0
    fallback_count: int = 0  # LLM path requested but heuristic result returned
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def execution_time_ms(self) -> float:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time) * 1000
        return 0.0

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.total_llm_calls if self.total_llm_calls else 0.0

    def record_llm_call(self, latency_ms: float, token_usage: Optional[Dict[str, int]] = None):
        self.total_llm_calls += 1
        self.total_latency_ms += latency_ms
        if token_usage:
            self.total_llm_tokens += token_usage.get("input_tokens", 0) + token_usage.get("output_tokens", 0)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_llm_calls": self.total_llm_calls,
            "total_llm_tokens": self.total_llm_tokens,
            "total_latency_ms": self.total_latency_ms,
            "avg_latency_ms": self.avg_latency_ms,
            "error_count": self.error_count,
            "fallback_count": self.fallback_count,
            "execution_time_ms": self.execution_time_ms,
        }


@dataclass
class AgentConfig:
    """Per-agent LLM and logging settings."""
    llm_temperature: float = 0.3
    llm_max_tokens: int = 2048
    llm_retry_count: int = 2
    template_loader: Optional[str] = None  # named loader registered on the TemplateManager
    enable_metrics: bool = True
    log_level: str = "INFO"
    extra: Dict[str, Any] = field(default_factory=dict)


class AgentResult(BaseModel):
    """Envelope returned by every agent execution."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    agent_id: str
    execution_time_ms: float
    metrics: Optional[Dict[str, Any]] = None


class BaseAgent(ABC):
    """
    Abstract base class for assessment agents.

    Subclasses implement execute() and report outcomes through _result().
    Callers that want status tracking and exception safety use
    execute_with_tracking(), which never raises.
    """

    def __init__(
        self,
        agent_id: Optional[str] = None,
        llm_client: Optional[LLMClient] = None,
        config: Optional[AgentConfig] = None,
        template_manager: Optional[TemplateManager] = None
    ):
        self.agent_id = agent_id or f"{self.__class__.__name__}_{uuid.uuid4().hex[:8]}"
        self.llm_client = llm_client
        self.config = config or AgentConfig()
        self.template_manager = template_manager or get_template_manager()

        self.status = AgentStatus.IDLE
        self.metrics = AgentMetrics() if self.config.enable_metrics else None

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))

    @property
    @abstractmethod
    def agent_type(self) -> str:
        pass

    @property
    @abstractmethod
    def role_description(self) -> str:
        pass

    @abstractmethod
    async def execute(self, **kwargs) -> AgentResult:
        pass

    async def llm_call(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """
        Send a prompt to the configured LLM client.

        Raises:
            LLMError: If no client is configured or the call fails after retries
        """
        if self.llm_client is None:
            raise LLMError("No LLM client configured")

        start_time = time.time()
        try:
            response = await self.llm_client.call(
                prompt=prompt,
                temperature=self.config.llm_temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.config.llm_max_tokens,
                retry_count=self.config.llm_retry_count,
                metadata={"agent_id": self.agent_id, "agent_type": self.agent_type, **(metadata or {})}
            )
        except Exception as e:
            if self.metrics:
                self.metrics.error_count += 1
            self.logger.error(f"LLM call failed: {e}", extra={
                "agent_id": self.agent_id,
                "prompt_length": len(prompt),
                "error_type": type(e).__name__
            })
            raise

        if self.metrics:
            self.metrics.record_llm_call(
                (time.time() - start_time) * 1000,
                getattr(response, "token_usage", None)
            )
        return response

    async def render_prompt(self, template_name: str, variables: Optional[Dict[str, Any]] = None) -> str:
        """Render one of the TemplateManager's prompts; the agent's identity is available as variables."""
        template_vars = {
            "agent_id": self.agent_id,
            "agent_type": self.agent_type,
            "role_description": self.role_description,
            **(variables or {})
        }
        try:
            return await self.template_manager.render_template(
                template_name, template_vars, loader_name=self.config.template_loader
            )
        except Exception as e:
            self.logger.error(f"Template rendering failed for {template_name}: {e}", extra={
                "agent_id": self.agent_id,
                "variables": sorted(template_vars)
            })
            raise

    def _result(
        self,
        success: bool,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        start_time: Optional[float] = None,
        **metadata
    ) -> AgentResult:
        return AgentResult(
            success=success,
            data=data,
            error=error,
            agent_id=self.agent_id,
            execution_time_ms=(time.time() - start_time) * 1000 if start_time else 0.0,
            metadata={"agent_type": self.agent_type, **metadata},
            metrics=self.metrics.as_dict() if self.metrics else None
        )

    async def execute_with_tracking(self, **kwargs) -> AgentResult:
        """Run execute(), updating status and timing; exceptions become a failed AgentResult."""
        self.status = AgentStatus.RUNNING
        if self.metrics:
            self.metrics.start_time = time.time()
        self.logger.info(f"Starting {self.agent_type}", extra={"agent_id": self.agent_id})

        try:
            result = await self.execute(**kwargs)
        except Exception as e:
            self._finish(False, error=e)
            return self._result(False, error=str(e), error_type=type(e).__name__)

        self._finish(result.success)
        return result

    def _finish(self, success: bool, error: Optional[Exception] = None):
        self.status = AgentStatus.COMPLETED if success else AgentStatus.FAILED
        if self.metrics:
            self.metrics.end_time = time.time()

        extra: Dict[str, Any] = {"agent_id": self.agent_id}
        if error is not None:
            extra["error"] = str(error)
        if self.metrics:
            extra.update({
                "execution_time_ms": self.metrics.execution_time_ms,
                "llm_calls": self.metrics.total_llm_calls,
                "fallbacks": self.metrics.fallback_count,
                "errors": self.metrics.error_count
            })

        self.logger.log(
            logging.INFO if success else logging.ERROR,
            f"{self.agent_type} {'completed' if success else 'failed'}",
            extra=extra
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.agent_id}, status={self.status.value})"
