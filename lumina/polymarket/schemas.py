from datetime import datetime
from pydantic import BaseModel


class PolymarketEvent(BaseModel):
    event_id: str
    title: str
    description: str = ""
    category: str = "Other"
    p_yes: float = 0.5
    p_no: float = 0.5
    volume: float = 0.0
    liquidity: float = 0.0
    end_date: datetime | None = None
    active: bool = True
