"""Gemini REST adapter for short JSON summaries."""

import logging
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiService:
    """
    Gemini generateContent adapter.

    Implements LLMService protocol. Asks for a JSON response with a small
    token budget; callers parse the result.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        session: requests.Session | None = None,
        timeout: int = 30,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._session = session or requests.Session()

    def generate(self, prompt: str) -> str:
        endpoint = f"{API_BASE}/{quote(self.model, safe='')}:generateContent"
        try:
            resp = self._session.post(
                endpoint,
                headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                json={
                    "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "temperature": 0.1,
                        "maxOutputTokens": 80,
                        "responseMimeType": "application/json",
                    },
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RuntimeError(f"Gemini request failed: {e}") from e

        if not resp.ok:
            raise RuntimeError(f"Gemini returned HTTP {resp.status_code}: {resp.text}")
        return extract_text(resp.json())


def extract_text(payload: dict) -> str:
    """Text of the first candidate that has any."""
    for candidate in payload.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts")
        if not isinstance(parts, list):
            continue
        text = "\n".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
        if text:
            return text
    return ""
