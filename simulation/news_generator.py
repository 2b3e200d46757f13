"""Synthetic news stories that push instrument sentiment up or down.

A story is one of three kinds:

* **company** (default 60%): one random instrument;
* **sector** (default 30%): every instrument in the sector of a random
  instrument;
* **market** (remainder): every instrument, at a dampened fraction of the
  template impact.

Impacts are *added* to ``Instrument.sentiment``; the price process turns
sentiment into drift and decays it each tick.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from typing import Callable

from jinja2 import Environment

from models.config import NewsConfig
from models.instrument import Instrument
from models.news import NewsStory, StoryTemplate
from simulation.scheduler import PeriodicTask, SharedScheduler

logger = logging.getLogger(__name__)

FALLBACK_SECTOR = "Unknown"

STORY_TEMPLATES: dict[str, list[StoryTemplate]] = {
    "positive": [
        StoryTemplate(text="{{ company }} Reports Strong Quarterly Earnings", impact=0.08),
        StoryTemplate(text="{{ company }} Announces New Product Line", impact=0.06),
        StoryTemplate(text="Analysts Upgrade {{ company }} to 'Buy'", impact=0.05),
        StoryTemplate(text="{{ company }} Secures Major Government Contract", impact=0.07),
    ],
    "negative": [
        StoryTemplate(text="{{ company }} Misses Earnings Expectations", impact=-0.07),
        StoryTemplate(text="{{ company }} CEO Steps Down Unexpectedly", impact=-0.08),
        StoryTemplate(text="Regulatory Probe into {{ company }}", impact=-0.06),
        StoryTemplate(text="{{ company }} Products Recalled Due to Safety Concerns", impact=-0.05),
    ],
    "sectorPositive": [
        StoryTemplate(text="{{ sector }} Sector Boosted by New Regulations", impact=0.04),
        StoryTemplate(text="Consumer Demand Surges for {{ sector }} Products", impact=0.04),
    ],
    "sectorNegative": [
        StoryTemplate(text="Supply Chain Issues Hit {{ sector }} Industry", impact=-0.04),
        StoryTemplate(text="Rising Costs Squeeze Margins in {{ sector }} Industry", impact=-0.04),
    ],
    "market": [
        StoryTemplate(text="Markets Rally on Economic News", impact=0.03),
        StoryTemplate(text="Fed Signals Policy Change", impact=-0.02),
        StoryTemplate(text="Consumer Confidence Index Reaches 10-Year High", impact=0.03),
        StoryTemplate(text="Trade Tensions Escalate Between Major Economies", impact=-0.03),
    ],
}

# Headlines are plain text, so no autoescaping.
_env = Environment(autoescape=False, keep_trailing_newline=True)


def render_headline(template: StoryTemplate, **values: str) -> str:
    """Render a template's ``{{ company }}`` / ``{{ sector }}`` placeholders.

    Values are inserted literally: braces or ``$`` inside a company or
    sector name are never rendered as further template syntax.
    """
    return _env.from_string(template.text).render(**values)


class NewsImpactGenerator:
    """Generates stories on demand or on a timer.

    *pool* is a callable returning the instruments currently tracked; it is
    read on every story so newly added instruments are picked up.
    *on_publish* is called with every published ``NewsStory``.
    """

    def __init__(
        self,
        pool: Callable[[], list[Instrument]],
        config: NewsConfig | None = None,
        rng: random.Random | None = None,
        on_publish: Callable[[NewsStory], None] | None = None,
        scheduler: SharedScheduler | None = None,
    ) -> None:
        self._pool = pool
        self._config = config or NewsConfig()
        self._rng = rng or random.Random()
        self._on_publish = on_publish
        self._history: deque[NewsStory] = deque(maxlen=self._config.history_size)
        self._timer = PeriodicTask(self.tick, name="news", scheduler=scheduler)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._timer.running

    @property
    def timer(self) -> PeriodicTask:
        return self._timer

    def start(self, interval: float) -> None:
        """Publish an initial burst, then one story every *interval* seconds.

        Calling ``start`` while running re-arms the timer.
        """
        self.publish(self._config.burst_size)
        self._timer.start(interval)
        logger.info("News generator running every %.1fs.", interval)

    def stop(self) -> None:
        self._timer.stop()

    def tick(self) -> NewsStory | None:
        """Publish a single story. Entry point for the timer."""
        stories = self.publish(1)
        return stories[0] if stories else None

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[NewsStory]:
        """Published stories, newest first."""
        return list(self._history)

    def publish(self, count: int = 1) -> list[NewsStory]:
        """Generate *count* stories from the current pool and record them."""
        published: list[NewsStory] = []
        for _ in range(count):
            story = self.generate_story(self._pool())
            if story is None:
                continue
            self._history.appendleft(story)
            published.append(story)
            if self._on_publish is not None:
                self._on_publish(story)
        return published

    def generate_story(self, pool: list[Instrument]) -> NewsStory | None:
        """Build one story and apply its impact to *pool*.

        Returns ``None`` (and logs) if the pool is empty or the story could
        not be built.
        """
        if not pool:
            logger.warning("No instruments tracked; skipping news story.")
            return None

        try:
            roll = self._rng.random()
            cfg = self._config
            if roll < cfg.company_probability:
                return self._company_story(pool)
            if roll < cfg.company_probability + cfg.sector_probability:
                return self._sector_story(pool)
            return self._market_story(pool)
        except Exception:
            logger.exception("Failed to build news story.")
            return None

    # ------------------------------------------------------------------
    # Story builders
    # ------------------------------------------------------------------

    def _company_story(self, pool: list[Instrument]) -> NewsStory:
        instrument = self._rng.choice(pool)
        tone = "positive" if self._rng.random() < 0.5 else "negative"
        template = self._rng.choice(STORY_TEMPLATES[tone])
        name = instrument.company_name or instrument.symbol
        story = NewsStory(
            headline=render_headline(template, company=name),
            category="company",
            impact=template.impact,
            affected_target=instrument.symbol,
            affected_symbols=[instrument.symbol],
        )
        _apply_impact([instrument], template.impact)
        return story

    def _sector_story(self, pool: list[Instrument]) -> NewsStory:
        sector = self._pick_sector(pool)
        tone = "sectorPositive" if self._rng.random() < 0.5 else "sectorNegative"
        template = self._rng.choice(STORY_TEMPLATES[tone])

        if sector == FALLBACK_SECTOR:
            affected = [i for i in pool if not (i.sector or "").strip()]
        else:
            affected = [i for i in pool if (i.sector or "").strip() == sector]
        story = NewsStory(
            headline=render_headline(template, sector=sector),
            category="sector",
            impact=template.impact,
            affected_target=sector,
            affected_symbols=[i.symbol for i in affected],
        )
        _apply_impact(affected, template.impact)
        return story

    def _market_story(self, pool: list[Instrument]) -> NewsStory:
        template = self._rng.choice(STORY_TEMPLATES["market"])
        story = NewsStory(
            headline=render_headline(template),
            category="market",
            impact=template.impact,
            affected_target="market",
            affected_symbols=[i.symbol for i in pool],
        )
        _apply_impact(pool, template.impact * self._config.market_dampening)
        return story

    def _pick_sector(self, pool: list[Instrument]) -> str:
        sector = (self._rng.choice(pool).sector or "").strip()
        if sector:
            return sector
        # The drawn instrument has no sector; fall back to any labelled one.
        labelled = sorted({(i.sector or "").strip() for i in pool} - {""})
        if not labelled:
            logger.warning("No sectors found in pool; using '%s'.", FALLBACK_SECTOR)
            return FALLBACK_SECTOR
        return self._rng.choice(labelled)


def _apply_impact(instruments: list[Instrument], impact: float) -> None:
    """Add *impact* to every instrument's sentiment, or to none of them.

    New values are computed before any is assigned, so a malformed
    instrument raises without leaving a partial update behind.
    """
    updated = [instrument.sentiment + impact for instrument in instruments]
    for instrument, sentiment in zip(instruments, updated):
        instrument.sentiment = sentiment
