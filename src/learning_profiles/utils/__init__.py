"""
Utility modules for learning profiles.
"""

from .llm import (
    APIError,
    LLMClient,
    LLMError,
    LLMResponse,
    RateLimitError,
    ValidationError,
    create_llm_client,
    extract_json,
)

__all__ = [
    'APIError',
    'LLMClient',
    'LLMError',
    'LLMResponse',
    'RateLimitError',
    'ValidationError',
    'create_llm_client',
    'extract_json',
]
