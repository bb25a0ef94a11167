# flickpick/ai/groq.py
from __future__ import annotations
from typing import Optional
import httpx

from ..config import Settings, settings as default_settings
from .base import ChatCompletionsProvider

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

class GroqProvider(ChatCompletionsProvider):
    """
    Chat completions via Groq's OpenAI-compatible endpoint (Llama models).
    """
    name = "groq"
    url = GROQ_URL

    def __init__(self, config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        config = config or default_settings
        super().__init__(config.groq_api_key, config.groq_model, config.groq_timeout_s, transport)
