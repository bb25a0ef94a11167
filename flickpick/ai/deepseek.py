# flickpick/ai/deepseek.py
from __future__ import annotations
from typing import Optional
import httpx

from ..config import Settings, settings as default_settings
from .base import ChatCompletionsProvider

DEEPSEEK_URL = "https://api.deepseek.com/v1/chat/completions"

class DeepSeekProvider(ChatCompletionsProvider):
    """
    DeepSeek-V3 over its OpenAI-compatible API. Prepaid: an empty balance
    answers 402, which takes the provider out of the retry loop.
    """
    name = "deepseek"
    url = DEEPSEEK_URL

    def __init__(self, config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        config = config or default_settings
        super().__init__(config.deepseek_api_key, config.deepseek_model, config.deepseek_timeout_s, transport)
