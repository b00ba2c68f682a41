from typing import Any

from ..prompts import SYSTEM_PROMPT
from .base import ChatRiskBackend


class CohereBackend(ChatRiskBackend):
    label = "Cohere"

    def build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        payload = {
            "model": self.config.model,
            "message": prompt,
            "preamble": SYSTEM_PROMPT,
            "temperature": self.config.temperature,
        }
        return self.config.url, headers, payload

    def extract_text(self, data: dict[str, Any]) -> str:
        text = data.get("text")
        return text if isinstance(text, str) else ""
