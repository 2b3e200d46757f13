"""News models: story templates and published stories."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from models.transaction import utc_now

NewsCategory = Literal["company", "sector", "market"]


class StoryTemplate(BaseModel):
    """Headline with a ``{{ company }}`` or ``{{ sector }}`` placeholder and a fixed impact."""

    text: str
    impact: float


class NewsStory(BaseModel):
    """A published news story.

    ``impact`` is the template's base impact; market stories apply a
    dampened fraction of it to each instrument.
    """

    headline: str
    category: NewsCategory
    impact: float
    affected_target: str  # symbol, sector name, or "market"
    affected_symbols: list[str] = []
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def tone(self) -> str:
        if self.impact > 0.001:
            return "positive"
        if self.impact < -0.001:
            return "negative"
        return "neutral"
