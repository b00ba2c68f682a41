from typing import Any

from .base import ChatRiskBackend

GEMINI_TOP_P = 0.8
GEMINI_TOP_K = 40


class GeminiBackend(ChatRiskBackend):
    label = "Gemini 3 Pro"
    detailed_prompt = True

    def build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        base = self.config.url.rstrip("/")
        url = f"{base}/models/{self.config.model}:generateContent"
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.api_key or "",
        }
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "topP": GEMINI_TOP_P,
                "topK": GEMINI_TOP_K,
            },
        }
        return url, headers, payload

    def extract_text(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))
