import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ...http_logging import HttpxTimer, log_upstream_response
from ..errors import BackendHTTPError, BackendNotConfigured, InvalidBackendResponse
from ..models import MarketSnapshot, RiskAssessment
from ..parsing import parse_assessment
from ..prompts import build_risk_prompt

logger = logging.getLogger(__name__)


class RiskBackend(Protocol):
    label: str

    async def assess(self, snapshot: MarketSnapshot) -> RiskAssessment: ...


@dataclass(frozen=True)
class BackendConfig:
    api_key: str | None
    url: str
    model: str
    temperature: float = 0.3
    timeout_seconds: float = 30.0


class ChatRiskBackend:
    """One chat/completion endpoint asked for a JSON risk assessment.

    Subclasses only describe the request body and where the reply text lives;
    the call itself is a single POST with no retries.
    """

    label = "backend"
    detailed_prompt = False

    def __init__(self, config: BackendConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client

    async def assess(self, snapshot: MarketSnapshot) -> RiskAssessment:
        if not self.config.api_key:
            raise BackendNotConfigured(self.label)
        prompt = build_risk_prompt(snapshot, detailed=self.detailed_prompt)
        url, headers, payload = self.build_request(prompt)
        response = await self._post(url, headers, payload, market_id=snapshot.market_id)
        if not response.is_success:
            raise BackendHTTPError(self.label, response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise InvalidBackendResponse(self.label, "response body is not json") from exc
        text = self.extract_text(data) if isinstance(data, dict) else ""
        logger.debug("risk_backend_response source=%s market_id=%s chars=%s", self.label, snapshot.market_id, len(text))
        return parse_assessment(text, self.label)

    def build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        raise NotImplementedError

    def extract_text(self, data: dict[str, Any]) -> str:
        raise NotImplementedError

    async def _post(
        self, url: str, headers: dict[str, str], payload: dict[str, Any], *, market_id: str
    ) -> httpx.Response:
        timer = HttpxTimer()
        if self._client is not None:
            response = await self._client.post(url, headers=headers, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                response = await client.post(url, headers=headers, json=payload)
        log_upstream_response(response, timer.elapsed(), upstream=self.label, market_id=market_id)
        return response
