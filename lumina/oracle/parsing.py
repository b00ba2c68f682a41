import json
import logging
import math
from typing import Any

from pydantic import ValidationError

from .errors import InvalidBackendResponse
from .models import (
    CONFIDENCE_RANGE,
    FACTOR_RANGE,
    PAYOUT_RATE_RANGE,
    PREMIUM_RATE_RANGE,
    RISK_SCORE_RANGE,
    RiskAssessment,
    clamp,
)

logger = logging.getLogger(__name__)

_TOP_LEVEL_RANGES = {
    "riskScore": RISK_SCORE_RANGE,
    "premiumRate": PREMIUM_RATE_RANGE,
    "payoutRate": PAYOUT_RATE_RANGE,
    "confidence": CONFIDENCE_RANGE,
}
_FACTOR_KEYS = ("volatility", "liquidity", "timeDecay", "marketSkew")


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in ``text``.

    Models sometimes wrap the object in prose or code fences, so braces are
    counted from the first ``{`` while skipping over JSON string literals.
    """
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            return text[start : end + 1]
        start = text.find("{", start + 1)
    return None


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def clamp_assessment(raw: dict[str, Any]) -> dict[str, Any]:
    clamped = dict(raw)
    for key, bounds in _TOP_LEVEL_RANGES.items():
        value = _as_number(clamped.get(key))
        if value is not None:
            clamped[key] = clamp(value, bounds)
    factors = clamped.get("factors")
    if isinstance(factors, dict):
        factors = dict(factors)
        for key in _FACTOR_KEYS:
            value = _as_number(factors.get(key))
            if value is not None:
                factors[key] = clamp(value, FACTOR_RANGE)
        clamped["factors"] = factors
    if clamped.get("reasoning") is None:
        clamped["reasoning"] = ""
    return clamped


def parse_assessment(text: str, source: str) -> RiskAssessment:
    candidate = extract_json_object(text)
    if candidate is None:
        raise InvalidBackendResponse(source, "no json object in response")
    try:
        raw = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise InvalidBackendResponse(source, f"invalid json: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise InvalidBackendResponse(source, "json payload is not an object")
    try:
        return RiskAssessment.model_validate(clamp_assessment(raw))
    except ValidationError as exc:
        logger.debug("risk_assessment_validation_failed source=%s errors=%s", source, exc.errors())
        raise InvalidBackendResponse(source, "response does not match assessment shape") from exc


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None
