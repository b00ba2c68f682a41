from typing import Any

from ..prompts import SYSTEM_PROMPT
from .base import ChatRiskBackend


class GrokBackend(ChatRiskBackend):
    label = "Grok"

    def build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        payload = {
            "model": self.config.model,
            "temperature": self.config.temperature,
            "stream": False,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        return self.config.url, headers, payload

    def extract_text(self, data: dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return content if isinstance(content, str) else ""
