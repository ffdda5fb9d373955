import base64
import logging
from typing import Dict, List, Optional

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class GeminiError(Exception):
    """Gemini could not be reached or did not return usable content."""
    pass


def image_part(image_bytes: bytes, mime_type: str) -> Dict:
    return {
        "inlineData": {
            "mimeType": mime_type,
            "data": base64.b64encode(image_bytes).decode("utf-8")
        }
    }


class GeminiClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        thinking_budget: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.timeout = timeout or settings.EXTRACTION_TIMEOUT_SECONDS
        self.thinking_budget = settings.GEMINI_THINKING_BUDGET if thinking_budget is None else thinking_budget

    def generate_content(
        self,
        parts: List[Dict],
        temperature: float = 0.0,
        max_output_tokens: int = 4096,
        response_mime_type: Optional[str] = None,
    ) -> str:
        """Send one generateContent request and return the concatenated text parts."""
        if not self.api_key:
            raise GeminiError("GEMINI_API_KEY not configured on server")

        generation_config = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens
        }
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type
        if self.thinking_budget >= 0:
            # thinking tokens count against maxOutputTokens
            generation_config["thinkingConfig"] = {"thinkingBudget": self.thinking_budget}

        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": parts
                }
            ],
            "generationConfig": generation_config
        }

        try:
            response = requests.post(
                GEMINI_URL.format(model=self.model),
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise GeminiError(f"Gemini API request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise GeminiError(f"Gemini API request failed: {e}") from e

        if response.status_code != 200:
            raise GeminiError(f"Gemini API request failed: {response.status_code} {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise GeminiError("Gemini API returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise GeminiError("Gemini API returned an unexpected body")

        candidates = data.get("candidates") or []
        if not candidates:
            raise GeminiError("Gemini API returned no candidates")

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise GeminiError("Gemini API returned a malformed candidate")
        if candidate.get("finishReason") == "MAX_TOKENS":
            raise GeminiError(f"Gemini output was cut off at {max_output_tokens} tokens")

        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise GeminiError("Gemini API returned malformed content")
        parts_out = content.get("parts") or []
        return "".join(part.get("text", "") for part in parts_out if isinstance(part, dict))
