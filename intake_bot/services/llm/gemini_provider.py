import base64
from typing import Optional

import httpx

from intake_bot.logging_config import get_logger
from intake_bot.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.gemini")

TRANSCRIBE_PROMPT = (
    "Transcribe this audio message verbatim. "
    "Respond with the transcript only, without commentary or formatting."
)


class GeminiProvider(LLMProvider):
    """Google Gemini generateContent API provider."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(
        self,
        api_key: str,
        default_model: str = "gemini-2.0-flash",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: int = 256,
    ) -> LLMResponse:
        """Generate response from Gemini."""
        model = model or self.default_model
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        data = await self._post(model, payload)
        return LLMResponse(
            content=self._extract_text(data),
            model=data.get("modelVersion", model),
            usage=data.get("usageMetadata"),
        )

    async def transcribe_audio(self, audio_bytes: bytes, mime_type: str) -> str:
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": TRANSCRIBE_PROMPT},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(audio_bytes).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }
        data = await self._post(self.default_model, payload)
        transcript = self._extract_text(data).strip()
        if not transcript:
            raise Exception("Empty transcript from Gemini API")
        return transcript

    async def _post(self, model: str, payload: dict) -> dict:
        if not self.api_key:
            raise Exception("GEMINI_API_KEY not configured")

        url = self.BASE_URL.format(model=model)
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            logger.debug(f"Gemini request: model={model}")
            response = await client.post(url, params={"key": self.api_key}, json=payload)

        if response.status_code != 200:
            logger.error(f"Gemini error: {response.text}")
            raise Exception(f"Gemini API error: {response.status_code} - {response.text}")

        return response.json()

    @staticmethod
    def _extract_text(data: dict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            raise Exception("Empty response from Gemini API")
        parts = candidates[0].get("content", {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)
