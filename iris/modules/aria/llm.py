"""
Thin wrapper around the OpenAI SDK. The base URL points at any
OpenAI-compatible chat completions endpoint (Gemini by default).
"""

import openai
from openai import OpenAI
from fastapi import HTTPException
from iris.config.settings import settings

RATE_LIMIT_MARKERS = ("429", "quota", "Too Many Requests")


def get_llm_client() -> OpenAI:
    if not settings.llm_api_key:
        raise HTTPException(status_code=500, detail="LLM API key is not configured")
    return OpenAI(api_key=settings.llm_api_key, base_url=settings.llm_base_url)


def is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    text = str(exc)
    return any(marker in text for marker in RATE_LIMIT_MARKERS)
