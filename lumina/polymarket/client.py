import json
import logging
import re
from datetime import datetime, timezone

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..http_logging import HttpxTimer, log_upstream_response
from .schemas import PolymarketEvent

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20

# Checked in order; the first category whose keywords hit the raw category or title wins.
_CATEGORY_RULES: list[tuple[str, tuple[str, ...], tuple[str, ...]]] = [
    ("Crypto", ("crypto", "bitcoin", "ethereum"), ("bitcoin", "ethereum", "crypto")),
    (
        "Politics",
        ("politic", "election"),
        ("election", "president", "trump", "biden"),
    ),
    (
        "Sports",
        ("sport", "football", "soccer", "basketball"),
        ("nba", "nfl", "lakers", "champions league", "premier league", "world cup"),
    ),
    (
        "Tech",
        ("tech", "ai", "technology"),
        (" ai ", "artificial intelligence", "agi"),
    ),
    (
        "Finance",
        ("finance", "business", "economy"),
        ("fed ", "federal reserve", "interest rate", "stock", "market"),
    ),
    ("Science", ("science",), ("fusion", "scientific")),
    (
        "Entertainment",
        ("entertainment", "pop culture"),
        ("oscar", "movie", "film"),
    ),
]


def _is_transient(exc: BaseException) -> bool:
    # Connection problems and 5xx are worth another attempt; other 4xx will not change.
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class PolymarketClient:
    def __init__(self, base_url: str, timeout: float = 15):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def fetch_events(self, limit: int | None = None) -> list[PolymarketEvent]:
        """
        Fetch open events from the Gamma API:
        - GET /events?active=true&closed=false&limit=N
        - outcome prices come back as a JSON-string array: '["0.12","0.88"]'
        """
        page_limit = _coerce_non_negative_int(limit if limit is not None else DEFAULT_PAGE_LIMIT)
        if page_limit == 0:
            return []
        params = {"active": "true", "closed": "false", "limit": str(page_limit)}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            payload = await self._get_json(client, f"{self.base_url}/events", params)

        raw_events = payload if isinstance(payload, list) else []
        events = [event for event in (parse_event(raw) for raw in raw_events) if event is not None]
        logger.info(
            "polymarket_events_fetched requested=%s received=%s parsed=%s",
            page_limit,
            len(raw_events),
            len(events),
        )
        return events

    async def fetch_event(self, event_id: str) -> PolymarketEvent | None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            payload = await self._get_json(client, f"{self.base_url}/events/{event_id}", None)
        if not isinstance(payload, dict):
            return None
        return parse_event(payload)

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _get_json(
        self, client: httpx.AsyncClient, url: str, params: dict[str, str] | None
    ):
        timer = HttpxTimer()
        r = await client.get(url, params=params, headers={"Accept": "application/json"})
        log_upstream_response(r, timer.elapsed(), upstream="polymarket")
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json()


def parse_event(event: dict) -> PolymarketEvent | None:
    if not isinstance(event, dict):
        return None
    event_id = str(event.get("id") or event.get("slug") or "")
    title = (event.get("title") or "").strip()
    if not event_id or not title:
        return None

    markets = event.get("markets") or []
    first = markets[0] if markets and isinstance(markets[0], dict) else {}
    prices = _parse_outcome_prices(first.get("outcomePrices") or first.get("outcome_prices"))
    p_yes = prices[0] if prices else 0.5
    p_no = prices[1] if len(prices) > 1 else 1 - p_yes

    liquidity = event.get("liquidity")
    if liquidity is None:
        liquidity = event.get("liquidityNum")

    return PolymarketEvent(
        event_id=event_id,
        title=title,
        description=event.get("description") or "",
        category=normalize_category(event.get("category"), title),
        p_yes=p_yes,
        p_no=p_no,
        volume=_parse_float(event.get("volume") or event.get("volumeNum")),
        liquidity=_parse_float(liquidity),
        end_date=_parse_ts(event.get("endDate") or event.get("end_date_iso") or first.get("endDate")),
        active=bool(event.get("active", True)) and not bool(event.get("closed", False)),
    )


def normalize_category(category: str | None, title: str | None) -> str:
    raw = (category or "").strip()
    category_lower = raw.lower()
    title_lower = (title or "").lower()
    for name, category_keywords, title_keywords in _CATEGORY_RULES:
        if any(_category_has(category_lower, keyword) for keyword in category_keywords):
            return name
        if any(keyword in title_lower for keyword in title_keywords):
            return name
    return raw or "Other"


def _category_has(category_lower: str, keyword: str) -> bool:
    # Two-letter keywords such as "ai" only count as whole words ("entertainment" is not AI).
    if len(keyword) <= 2:
        return keyword in re.split(r"[^a-z0-9]+", category_lower)
    return keyword in category_lower


def _parse_outcome_prices(raw) -> list[float]:
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return []
    if not isinstance(raw, list):
        return []
    prices = []
    for value in raw:
        try:
            prices.append(min(max(float(value), 0.0), 1.0))
        except (TypeError, ValueError):
            return []
    return prices


def _parse_float(value) -> float:
    try:
        return max(float(value or 0.0), 0.0)
    except (TypeError, ValueError):
        return 0.0


def _coerce_non_negative_int(value: int | None) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def _parse_ts(value) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    if isinstance(value, str):
        v = value.strip()
        if not v:
            return None
        if v.endswith("Z"):
            v = v[:-1] + "+00:00"
        v = _trim_iso_fraction(v)
        try:
            dt = datetime.fromisoformat(v)
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    return None


def _trim_iso_fraction(value: str) -> str:
    if "." not in value:
        return value
    tz_pos = None
    t_pos = value.find("T")
    for i in range(len(value) - 1, -1, -1):
        ch = value[i]
        if ch in "+-" and (t_pos == -1 or i > t_pos):
            tz_pos = i
            break
    if tz_pos is None:
        main = value
        tz = ""
    else:
        main = value[:tz_pos]
        tz = value[tz_pos:]
    if "." not in main:
        return value
    pre, frac = main.split(".", 1)
    digits = "".join(ch for ch in frac if ch.isdigit())
    if not digits:
        return pre + tz
    if len(digits) > 6:
        digits = digits[:6]
    return pre + "." + digits + tz
