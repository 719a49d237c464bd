"""
Tests for the LLM client utilities.
"""

import pytest
from pydantic import BaseModel

from learning_profiles.config import LLMConfig
from learning_profiles.utils.llm import (
    APIError,
    ClaudeLLMProvider,
    GitHubModelsLLMProvider,
    LLMClient,
    LLMProvider,
    LLMRequest,
    LLMResponse,
    RateLimitError,
    ValidationError,
    create_llm_client,
    extract_json,
    parse_structured,
)


class Verdict(BaseModel):
    score: float
    comment: str


class ScriptedProvider(LLMProvider):
    """Provider that replays a list of outcomes, raising exceptions as they come."""

    name = "scripted"

    def __init__(self, outcomes):
        super().__init__(max_retries=0, retry_delay=0.0)
        self.outcomes = list(outcomes)
        self.requests = []

    async def call_single(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return self._build_response(request, outcome, start_time=0.0)


def no_keys(**overrides):
    values = {"gemini_api_key": None, "anthropic_api_key": None, "github_token": None}
    values.update(overrides)
    return LLMConfig(**values)


class TestJSONExtraction:

    def test_fenced_block_preferred(self):
        content = 'Aquí está:\n```json\n{"score": 80, "comment": "bien"}\n```\nFin {"score": 1}'
        assert extract_json(content) == '{"score": 80, "comment": "bien"}'

    def test_bare_object_in_prose(self):
        content = 'Resultado: {"score": 72.5, "comment": "ok"} gracias'
        assert extract_json(content) == '{"score": 72.5, "comment": "ok"}'

    def test_nested_object(self):
        content = '{"score": 90, "detail": {"a": 1}}'
        assert extract_json(content) == content

    def test_no_json(self):
        assert extract_json("sin datos estructurados") is None

    def test_parse_structured(self):
        verdict = parse_structured('```\n{"score": 88, "comment": "muy bien"}\n```', Verdict)
        assert verdict.score == 88
        assert verdict.comment == "muy bien"

    def test_parse_structured_schema_mismatch(self):
        with pytest.raises(ValidationError, match="Failed to parse"):
            parse_structured('{"score": "alto"}', Verdict)

    def test_parse_structured_without_json(self):
        with pytest.raises(ValidationError, match="No JSON object"):
            parse_structured("nada", Verdict)


class TestLLMClient:

    @pytest.mark.asyncio
    async def test_returns_raw_response(self):
        provider = ScriptedProvider(["hola"])
        client = LLMClient(provider, default_retry_delay=0.0)

        response = await client.call("prompt", temperature=0.5, metadata={"k": "v"})

        assert isinstance(response, LLMResponse)
        assert response.content == "hola"
        assert provider.requests[0].temperature == 0.5
        assert provider.requests[0].metadata == {"k": "v"}

    @pytest.mark.asyncio
    async def test_returns_parsed_model(self):
        provider = ScriptedProvider(['{"score": 91, "comment": "excelente"}'])
        client = LLMClient(provider, default_retry_delay=0.0)

        verdict = await client.call("prompt", response_format=Verdict)

        assert isinstance(verdict, Verdict)
        assert verdict.score == 91

    @pytest.mark.asyncio
    async def test_retries_after_validation_error(self):
        provider = ScriptedProvider(["no json", '{"score": 70, "comment": "ok"}'])
        client = LLMClient(provider, default_retry_delay=0.0)

        verdict = await client.call("prompt", response_format=Verdict, retry_count=1)

        assert verdict.score == 70
        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_raises_after_retries_exhausted(self):
        provider = ScriptedProvider([APIError("boom"), APIError("boom again")])
        client = LLMClient(provider, default_retry_delay=0.0)

        with pytest.raises(APIError, match="boom again"):
            await client.call("prompt", retry_count=1)

    @pytest.mark.asyncio
    async def test_rate_limit_retry(self):
        provider = ScriptedProvider([RateLimitError("slow down"), "listo"])
        client = LLMClient(provider, default_retry_delay=0.0, rate_limit_delay=0.0)

        response = await client.call("prompt", retry_count=1)

        assert response.content == "listo"


class TestCreateLLMClient:

    def test_requires_a_key(self):
        with pytest.raises(ValueError, match="No LLM API key configured"):
            create_llm_client(config=no_keys())

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider type"):
            create_llm_client(provider_type="openai", api_key="x", config=no_keys())

    def test_selects_github_models(self):
        client = create_llm_client(config=no_keys(github_token="gh-token"))

        assert isinstance(client.provider, GitHubModelsLLMProvider)
        assert client.provider.model == "gpt-4o-mini"

    def test_selects_claude(self):
        client = create_llm_client(config=no_keys(anthropic_api_key="sk-ant"))
        assert isinstance(client.provider, ClaudeLLMProvider)

    def test_explicit_provider_without_key(self):
        with pytest.raises(ValueError, match="API key required for claude"):
            create_llm_client(provider_type="claude", config=no_keys())

    def test_retry_settings_come_from_config(self):
        client = create_llm_client(config=no_keys(github_token="gh-token", max_retries=5, request_timeout=12.0))

        assert client.provider.max_retries == 5
        assert client.provider.timeout == 12.0
