"""LLM client utilities with async support and retry logic."""

import asyncio
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type, TypeVar, Union

import aiohttp
from pydantic import BaseModel, ValidationError as PydanticValidationError

try:
    import google.genai as genai
    from google.genai import types as genai_types
    GEMINI_AVAILABLE = True
except ImportError:
    GEMINI_AVAILABLE = False

from ..config import LLMConfig, settings


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

FENCED_JSON_PATTERN = re.compile(r'```(?:json)?\s*(\{.*?\})\s*```', re.DOTALL)
BARE_JSON_PATTERN = re.compile(r'\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}', re.DOTALL)


class LLMError(Exception):
    """Base exception for LLM-related errors."""
    pass


class RateLimitError(LLMError):
    """Exception raised when rate limit is exceeded."""
    pass


class ValidationError(LLMError):
    """Exception raised when LLM response doesn't match expected schema."""
    pass


class APIError(LLMError):
    """Exception raised for API-specific errors."""
    pass


@dataclass
class LLMRequest:
    """Represents a single LLM request."""
    prompt: str
    response_format: Optional[Type[BaseModel]] = None
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResponse:
    """Represents a single LLM response."""
    content: str
    parsed_data: Optional[BaseModel] = None
    latency_ms: Optional[float] = None
    token_usage: Optional[Dict[str, int]] = None


def extract_json(content: str) -> Optional[str]:
    """Extract a JSON object from LLM response content, preferring fenced code blocks."""
    match = FENCED_JSON_PATTERN.search(content)
    if match:
        return match.group(1)

    match = BARE_JSON_PATTERN.search(content)
    if match:
        return match.group(0)

    return None


def parse_structured(content: str, response_format: Type[T]) -> T:
    """Parse and validate the JSON object embedded in content."""
    json_str = extract_json(content)
    if json_str is None:
        raise ValidationError("No JSON object found in LLM response")
    try:
        return response_format.model_validate(json.loads(json_str))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ValidationError(f"Failed to parse LLM response: {e}") from e


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name: str = "llm"

    def __init__(self, max_retries: int = 3, retry_delay: float = 1.0, timeout: float = 30.0):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    @abstractmethod
    async def call_single(self, request: LLMRequest) -> LLMResponse:
        """Make a single LLM call."""
        pass

    def _build_response(
        self,
        request: LLMRequest,
        content: str,
        start_time: float,
        token_usage: Optional[Dict[str, int]] = None
    ) -> LLMResponse:
        parsed_data = None
        if request.response_format and content:
            parsed_data = parse_structured(content, request.response_format)

        return LLMResponse(
            content=content,
            parsed_data=parsed_data,
            latency_ms=(time.time() - start_time) * 1000,
            token_usage=token_usage or {}
        )


class HTTPLLMProvider(LLMProvider):
    """Provider that talks to a JSON-over-HTTP chat endpoint with aiohttp."""

    def __init__(self, api_key: str, model: str, base_url: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def _payload(self, request: LLMRequest) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _content(self, response_data: Dict[str, Any]) -> str:
        pass

    async def call_single(self, request: LLMRequest) -> LLMResponse:
        """Make a single API call with exponential backoff on transport errors."""
        start_time = time.time()

        for attempt in range(self.max_retries + 1):
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.post(
                        self.base_url,
                        headers=self._headers(),
                        json=self._payload(request),
                        timeout=aiohttp.ClientTimeout(total=self.timeout)
                    ) as response:

                        if response.status == 429:
                            raise RateLimitError(f"{self.name} rate limit exceeded")
                        elif response.status >= 400:
                            error_text = await response.text()
                            raise APIError(f"{self.name} API error {response.status}: {error_text}")

                        response_data = await response.json()
                        return self._build_response(
                            request,
                            self._content(response_data),
                            start_time,
                            response_data.get("usage", {})
                        )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt == self.max_retries:
                    raise APIError(f"{self.name} call failed after {self.max_retries} retries: {e}") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise APIError(f"{self.name} call failed without a response")


class ClaudeLLMProvider(HTTPLLMProvider):
    """Claude API provider implementation."""

    name = "claude"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-haiku-latest",
        base_url: str = "https://api.anthropic.com/v1/messages",
        **kwargs
    ):
        super().__init__(api_key, model, base_url, **kwargs)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01"
        }

    def _payload(self, request: LLMRequest) -> Dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": request.max_tokens or 2048,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}]
        }

    def _content(self, response_data: Dict[str, Any]) -> str:
        blocks = response_data.get("content") or [{}]
        return blocks[0].get("text", "")


class GitHubModelsLLMProvider(HTTPLLMProvider):
    """OpenAI-compatible chat completions served by GitHub Models."""

    name = "github"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://models.inference.ai.azure.com/chat/completions",
        **kwargs
    ):
        super().__init__(api_key, model, base_url, **kwargs)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }

    def _payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}]
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        return payload

    def _content(self, response_data: Dict[str, Any]) -> str:
        choices = response_data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""


class GeminiLLMProvider(LLMProvider):
    """Google Gemini API provider implementation."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", **kwargs):
        if not GEMINI_AVAILABLE:
            raise ImportError("google-genai package not available. Install with: pip install google-genai")

        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model
        self.client = genai.Client(api_key=api_key)

    async def call_single(self, request: LLMRequest) -> LLMResponse:
        """Make a single Gemini API call with retry logic."""
        start_time = time.time()

        generation_config = {"temperature": request.temperature}
        if request.max_tokens:
            generation_config["max_output_tokens"] = request.max_tokens

        for attempt in range(self.max_retries + 1):
            try:
                response = await asyncio.to_thread(
                    self.client.models.generate_content,
                    model=self.model,
                    contents=request.prompt,
                    config=genai_types.GenerateContentConfig(**generation_config)
                )
            except Exception as e:
                error_str = str(e).lower()
                if "rate limit" in error_str or "quota" in error_str:
                    if attempt < self.max_retries:
                        wait_time = self.retry_delay * (2 ** attempt)
                        logger.warning(f"Gemini rate limit hit, waiting {wait_time}s before retry")
                        await asyncio.sleep(wait_time)
                        continue
                    raise RateLimitError("Gemini rate limit exceeded") from e

                if attempt == self.max_retries:
                    raise APIError(f"Gemini API call failed after {self.max_retries} retries: {e}") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))
                continue

            token_usage = {}
            usage = getattr(response, "usage_metadata", None)
            if usage is not None:
                token_usage = {
                    "input_tokens": getattr(usage, "prompt_token_count", 0) or 0,
                    "output_tokens": getattr(usage, "candidates_token_count", 0) or 0,
                    "total_tokens": getattr(usage, "total_token_count", 0) or 0
                }
            return self._build_response(request, response.text or "", start_time, token_usage)

        raise APIError("Gemini call failed without a response")


class LLMClient:
    """High-level client for LLM operations with built-in retry and error handling."""

    def __init__(
        self,
        provider: LLMProvider,
        default_retry_count: int = 2,
        default_retry_delay: float = 1.0,
        rate_limit_delay: float = 2.0
    ):
        self.provider = provider
        self.default_retry_count = default_retry_count
        self.default_retry_delay = default_retry_delay
        self.rate_limit_delay = rate_limit_delay

    async def call(
        self,
        prompt: str,
        response_format: Optional[Type[T]] = None,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        retry_count: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Union[LLMResponse, T]:
        """Make a single LLM call; returns the parsed model when response_format is given."""
        request = LLMRequest(
            prompt=prompt,
            response_format=response_format,
            temperature=temperature,
            max_tokens=max_tokens,
            metadata=metadata or {}
        )

        retry_count = self.default_retry_count if retry_count is None else retry_count

        for attempt in range(retry_count + 1):
            try:
                response = await self.provider.call_single(request)

                logger.info(
                    "LLM call completed",
                    extra={
                        "provider": self.provider.name,
                        "prompt_length": len(prompt),
                        "response_length": len(response.content),
                        "latency_ms": response.latency_ms,
                        "attempt": attempt + 1,
                        "has_structured_output": response.parsed_data is not None
                    }
                )

                return response.parsed_data if response.parsed_data is not None else response

            except RateLimitError:
                if attempt == retry_count:
                    raise
                logger.warning(f"Rate limit hit, waiting {self.rate_limit_delay}s before retry")
                await asyncio.sleep(self.rate_limit_delay)
            except ValidationError as e:
                if attempt == retry_count:
                    logger.error(f"Validation failed after {retry_count} retries: {e}")
                    raise
                logger.warning(f"Validation error on attempt {attempt + 1}, retrying: {e}")
                await asyncio.sleep(self.default_retry_delay * (attempt + 1))
            except LLMError as e:
                if attempt == retry_count:
                    logger.error(f"LLM call failed after {retry_count} retries: {e}")
                    raise
                logger.warning(f"Error on attempt {attempt + 1}, retrying: {e}")
                await asyncio.sleep(self.default_retry_delay * (attempt + 1))

        raise LLMError(f"Failed after {retry_count} retries")


def create_llm_client(
    provider_type: Optional[str] = None,
    api_key: Optional[str] = None,
    config: Optional[LLMConfig] = None,
    **kwargs
) -> LLMClient:
    """Create an LLM client with the specified provider.

    If provider_type is None, the provider is auto-selected from the configured keys:
    1. Gemini if GEMINI_API_KEY is set
    2. GitHub Models if GITHUB_TOKEN is set
    3. Claude if ANTHROPIC_API_KEY is set
    """
    config = config or settings.llm
    keys = {
        "gemini": config.gemini_api_key,
        "github": config.github_token,
        "claude": config.anthropic_api_key,
    }

    if provider_type is None:
        provider_type = next((name for name, key in keys.items() if key), None)
        if provider_type is None:
            raise ValueError(
                "No LLM API key configured. Please set one of:\n"
                "- GEMINI_API_KEY (recommended)\n"
                "- GITHUB_TOKEN\n"
                "- ANTHROPIC_API_KEY"
            )

    if provider_type not in keys:
        raise ValueError(f"Unknown provider type: {provider_type}. Supported: {', '.join(keys)}")

    api_key = api_key or keys[provider_type]
    if not api_key:
        raise ValueError(f"API key required for {provider_type} provider")

    kwargs.setdefault("max_retries", config.max_retries)
    kwargs.setdefault("retry_delay", config.retry_delay)
    kwargs.setdefault("timeout", config.request_timeout)

    if provider_type == "gemini":
        provider = GeminiLLMProvider(api_key=api_key, model=kwargs.pop("model", config.gemini_model), **kwargs)
    elif provider_type == "github":
        provider = GitHubModelsLLMProvider(api_key=api_key, model=kwargs.pop("model", config.github_model), **kwargs)
    else:
        provider = ClaudeLLMProvider(api_key=api_key, **kwargs)

    return LLMClient(provider=provider)
