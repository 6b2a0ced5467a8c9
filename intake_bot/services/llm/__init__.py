from intake_bot.services.llm.base import LLMProvider, LLMResponse
from intake_bot.services.llm.gemini_provider import GeminiProvider

__all__ = ["LLMProvider", "LLMResponse", "GeminiProvider"]
