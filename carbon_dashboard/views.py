"""
views.py
--------
View models for the two dashboard pages.

Each view owns its in-memory state and walks the same small state machine:

    idle -> loading -> {success, error}
    success -> refreshing -> {success, error}
    error -> (retry) -> loading

Errors from the fetch layer are caught here, logged, and turned into a
generic user-facing message; nothing structured is exposed to the page.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence

import pandas as pd

from . import config
from .aggregator import SourceSelection, extract_topics, fetch_all_news, filter_articles
from .exceptions import DashboardError
from .models import NewsArticle, NewsSource, OffsetProject
from .news_sources import NewsSourceClient, default_sources, utc_now
from .refresh import AutoRefreshTimer
from .registry import ProjectRegistryClient
from .visualizer import render_news_page, render_projects_page

logger = logging.getLogger(__name__)

PROJECTS_ERROR_MESSAGE = "Failed to load carbon projects. Please try again later."
NEWS_ERROR_MESSAGE = "Failed to load news. Please try again later."


class ViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    REFRESHING = "refreshing"
    ERROR = "error"


class ProjectCatalogView:
    """
    Grid of registered offset projects from whichever registry answers.

    Parameters
    ----------
    client : ProjectRegistryClient, optional
        Registry client; a default one is built when omitted.
    """

    def __init__(self, client: Optional[ProjectRegistryClient] = None):
        self.client = client or ProjectRegistryClient()
        self.state = ViewState.IDLE
        self.projects: List[OffsetProject] = []
        self.registry: Optional[str] = None
        self.error_message = ""

    async def load(self) -> None:
        """Fetch the catalog. Nothing is cached between loads."""
        self.state = ViewState.LOADING
        self.error_message = ""
        try:
            projects, registry = await asyncio.to_thread(self.client.fetch_projects)
        except DashboardError as e:
            logger.error(f"Error fetching projects: {e}")
            self.projects = []
            self.registry = None
            self.error_message = PROJECTS_ERROR_MESSAGE
            self.state = ViewState.ERROR
            return
        self.projects = projects
        self.registry = registry
        self.state = ViewState.SUCCESS
        logger.info(f"Catalog loaded: {len(projects)} projects from {registry}")

    async def retry(self) -> bool:
        """Reload from scratch after an error. Returns False outside the error state."""
        if self.state is not ViewState.ERROR:
            return False
        await self.load()
        return True

    def to_dataframe(self) -> pd.DataFrame:
        return self.client.to_dataframe(self.projects)

    def summary(self) -> dict:
        """Key catalog metrics for the page header and the CLI."""
        df = self.to_dataframe()
        if df.empty:
            return {
                "total_projects": 0,
                "total_credits": 0,
                "avg_price": None,
                "top_location": None,
                "registry": self.registry,
            }
        locations = df["location"].replace("", pd.NA).dropna()
        return {
            "total_projects": len(df),
            "total_credits": int(df["credits_available"].sum()),
            "avg_price": round(float(df["price_per_credit"].mean()), 2),
            "top_location": locations.value_counts().index[0] if not locations.empty else None,
            "registry": self.registry,
        }

    def render_html(self) -> str:
        return render_projects_page(self)


class NewsAggregatorView:
    """
    Merged carbon-market news from several sources with source and topic
    filters and an optional five-minute auto-refresh.

    Parameters
    ----------
    sources : sequence of NewsSourceClient, optional
        News feeds to aggregate; the three default feeds when omitted.
    clock : callable
        Returns the current aware UTC time.
    refresh_interval : float
        Seconds between auto-refresh cycles.
    """

    def __init__(
        self,
        sources: Optional[Sequence[NewsSourceClient]] = None,
        clock: Callable[[], datetime] = utc_now,
        refresh_interval: float = config.AUTO_REFRESH_INTERVAL,
    ):
        self.sources = list(sources) if sources is not None else default_sources()
        self.clock = clock
        self.state = ViewState.IDLE
        self.articles: List[NewsArticle] = []
        self.topics: List[str] = []
        self.selected_topic: Optional[str] = None
        self.selection = SourceSelection()
        self.last_updated: Optional[datetime] = None
        self.error_message = ""
        self.failed_sources: List[NewsSource] = []
        self.auto_refresh = True
        self.cycles = 0
        self._in_flight = False
        self._closed = False
        self._timer = AutoRefreshTimer(self._on_timer, interval=refresh_interval)

    # ─── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Mount: initial load, then arm the auto-refresh timer if enabled."""
        await self.load()
        if self.auto_refresh and not self._closed:
            self._timer.start()

    def close(self) -> None:
        """Teardown: cancel the timer and ignore any cycle still in flight."""
        self._closed = True
        self._timer.stop()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    # ─── Fetch cycles ──────────────────────────────────────────────────────

    async def load(self) -> bool:
        return await self._run_cycle(ViewState.LOADING)

    async def refresh(self) -> bool:
        """
        Manual refresh. Ignored while a cycle is in flight or when the view
        is in the error state (use retry() there).
        """
        if self._in_flight or self._closed:
            return False
        if self.state is ViewState.ERROR:
            return False
        if self.state is ViewState.IDLE:
            return await self.load()
        return await self._run_cycle(ViewState.REFRESHING)

    async def retry(self) -> bool:
        if self.state is not ViewState.ERROR or self._in_flight:
            return False
        return await self.load()

    async def _on_timer(self) -> None:
        if self.state is ViewState.SUCCESS:
            await self.refresh()
        else:
            logger.debug(f"Skipping auto-refresh in state {self.state.value}")

    async def _run_cycle(self, pending: ViewState) -> bool:
        if self._in_flight or self._closed:
            return False
        previous = self.state
        self._in_flight = True
        self.state = pending
        self.error_message = ""
        try:
            result = await fetch_all_news(self.sources)
        except DashboardError as e:
            if self._closed:
                return False
            logger.error(f"Error fetching news: {e}")
            self.error_message = NEWS_ERROR_MESSAGE
            self.state = ViewState.ERROR
            return False
        except asyncio.CancelledError:
            self.state = previous
            raise
        finally:
            self._in_flight = False

        if self._closed:
            logger.debug("View closed during fetch; discarding results")
            return False
        self.articles = result.articles
        self.failed_sources = result.failed_sources
        self.topics = extract_topics(self.articles)
        self.last_updated = self.clock()
        self.cycles += 1
        self.state = ViewState.SUCCESS
        return True

    # ─── Filters ───────────────────────────────────────────────────────────

    @property
    def filtered_articles(self) -> List[NewsArticle]:
        return filter_articles(self.articles, self.selection, self.selected_topic)

    def select_topic(self, topic: Optional[str]) -> None:
        """Select ``topic``; selecting the current topic again, or None, clears it."""
        if topic is None or topic == self.selected_topic:
            self.selected_topic = None
        else:
            self.selected_topic = topic

    def clear_topic(self) -> None:
        self.selected_topic = None

    def toggle_source(self, source) -> bool:
        return self.selection.toggle(source)

    def set_auto_refresh(self, enabled: bool) -> None:
        self.auto_refresh = enabled
        if not enabled:
            self._timer.stop()
            return
        if self._closed or self.state is ViewState.IDLE:
            return  # armed by start()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer.start()

    def render_html(self) -> str:
        return render_news_page(self, now=self.clock())
