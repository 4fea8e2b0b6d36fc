"""
news_sources.py
---------------
The three independent news feeds aggregated by the news view.

NewsData.io and GNews are live keyword searches. Carbon Pulse has no public
API, so CarbonPulseSource returns a fixed set of articles after a short
delay. Every source exposes ``async fetch()`` and raises SourceFetchError on
failure; the blocking HTTP call runs in a worker thread so the event loop
stays responsive while the three sources are in flight.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import requests

from . import config
from .exceptions import SourceFetchError
from .models import NewsArticle, NewsSource, is_recent, parse_timestamp, random_token

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NewsSourceClient:
    """Base class for a single news feed."""

    source: NewsSource

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    async def fetch(self) -> List[NewsArticle]:
        raise NotImplementedError

    def _is_new(self, published_at: datetime, fetched_at: datetime) -> bool:
        return is_recent(published_at, fetched_at, config.RECENT_WINDOW)


class HTTPNewsSource(NewsSourceClient):
    """A news feed backed by a JSON search endpoint."""

    url: str

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: int = config.REQUEST_TIMEOUT,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(clock)
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            session.headers.update(config.DEFAULT_HEADERS)
        self._session = session

    def params(self) -> Dict[str, Any]:
        raise NotImplementedError

    def parse(self, payload: Dict[str, Any], fetched_at: datetime) -> List[NewsArticle]:
        raise NotImplementedError

    async def fetch(self) -> List[NewsArticle]:
        payload = await asyncio.to_thread(self._get_json)
        articles = self.parse(payload, self.clock())
        logger.info(f"{self.source.display_name}: {len(articles)} articles")
        return articles

    def _get_json(self) -> Dict[str, Any]:
        try:
            resp = self._session.get(self.url, params=self.params(), timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.exceptions.RequestException as e:
            raise SourceFetchError(self.source, f"request failed: {e}") from e
        except ValueError as e:
            raise SourceFetchError(self.source, f"invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise SourceFetchError(self.source, "unexpected payload shape")
        return payload


class NewsDataSource(HTTPNewsSource):
    """NewsData.io keyword search, tagged as general news."""

    source = NewsSource.NEWSDATA
    url = config.NEWSDATA_URL

    def __init__(self, api_key: str = config.NEWSDATA_API_KEY, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def params(self) -> Dict[str, Any]:
        return {
            "apikey": self.api_key,
            "q": config.NEWSDATA_QUERY,
            "language": config.NEWS_LANGUAGE,
            "category": config.NEWSDATA_CATEGORIES,
        }

    def parse(self, payload: Dict[str, Any], fetched_at: datetime) -> List[NewsArticle]:
        if payload.get("status") != "success":
            message = payload.get("message") or "Failed to fetch news from NewsData.io"
            raise SourceFetchError(self.source, str(message))

        articles = []
        for raw in payload.get("results") or []:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed NewsData.io entry: {raw!r}")
                continue
            published_at = parse_timestamp(raw.get("pubDate"))
            articles.append(NewsArticle(
                id=f"newsdata-{raw.get('article_id') or random_token()}",
                title=raw.get("title") or "",
                description=raw.get("description") or raw.get("content") or "No description available",
                link=raw.get("link") or "",
                published_at=published_at,
                source_label=raw.get("source_id") or "",
                source=self.source,
                category="general",
                image_url=raw.get("image_url"),
                is_new=self._is_new(published_at, fetched_at),
            ))
        return articles


class GNewsSource(HTTPNewsSource):
    """GNews keyword search, tagged as financial news."""

    source = NewsSource.GNEWS
    url = config.GNEWS_URL

    def __init__(self, token: str = config.GNEWS_API_TOKEN, **kwargs):
        super().__init__(**kwargs)
        self.token = token

    def params(self) -> Dict[str, Any]:
        return {
            "q": config.GNEWS_QUERY,
            "lang": config.NEWS_LANGUAGE,
            "max": config.GNEWS_MAX_RESULTS,
            "token": self.token,
        }

    def parse(self, payload: Dict[str, Any], fetched_at: datetime) -> List[NewsArticle]:
        if "articles" not in payload:
            raise SourceFetchError(self.source, "Failed to fetch news from GNews")

        articles = []
        for raw in payload.get("articles") or []:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed GNews entry: {raw!r}")
                continue
            published_at = parse_timestamp(raw.get("publishedAt"))
            publisher = raw.get("source") or {}
            articles.append(NewsArticle(
                id=f"gnews-{random_token()}",
                title=raw.get("title") or "",
                description=raw.get("description") or "",
                link=raw.get("url") or "",
                published_at=published_at,
                source_label=publisher.get("name", "") if isinstance(publisher, dict) else str(publisher),
                source=self.source,
                category="financial",
                image_url=raw.get("image"),
                is_new=self._is_new(published_at, fetched_at),
            ))
        return articles


# (title, description, hours before fetch, category, image)
CARBON_PULSE_FIXTURES = [
    (
        "EU Carbon Market Weekly: EUA prices stable amid mixed signals",
        "EU carbon prices stayed in a narrow range this week as traders weighed "
        "bearish economic data against technical support.",
        0,
        "market analysis",
        "https://images.pexels.com/photos/2990650/pexels-photo-2990650.jpeg",
    ),
    (
        "Voluntary carbon market faces scrutiny over quality standards",
        "The voluntary carbon market is seeing increased regulatory attention as "
        "concerns over credit quality and integrity continue to rise.",
        3,
        "regulation",
        "https://images.pexels.com/photos/4218883/pexels-photo-4218883.jpeg",
    ),
    (
        "China ETS expands scope to include more industrial sectors",
        "China's national emissions trading scheme will add new industrial sectors "
        "next year as part of efforts to reach carbon neutrality by 2060.",
        5,
        "policy",
        "https://images.pexels.com/photos/2965773/pexels-photo-2965773.jpeg",
    ),
]


class CarbonPulseSource(NewsSourceClient):
    """Static stand-in for Carbon Pulse, which offers no live API."""

    source = NewsSource.CARBON_PULSE

    def __init__(self, delay: float = config.CARBON_PULSE_DELAY, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay

    async def fetch(self) -> List[NewsArticle]:
        await asyncio.sleep(self.delay)
        fetched_at = self.clock()
        articles = []
        for i, (title, description, hours_ago, category, image) in enumerate(CARBON_PULSE_FIXTURES, start=1):
            published_at = fetched_at - timedelta(hours=hours_ago)
            articles.append(NewsArticle(
                id=f"carbonpulse-{i}",
                title=title,
                description=description,
                link=f"https://carbon-pulse.com/example-article-{i}",
                published_at=published_at,
                source_label="Carbon Pulse",
                source=self.source,
                category=category,
                image_url=image,
                is_new=self._is_new(published_at, fetched_at),
            ))
        logger.info(f"{self.source.display_name}: {len(articles)} articles")
        return articles


def default_sources(session: Optional[requests.Session] = None) -> List[NewsSourceClient]:
    """The three feeds in display order, sharing one HTTP session."""
    if session is None:
        session = requests.Session()
        session.headers.update(config.DEFAULT_HEADERS)
    return [
        NewsDataSource(session=session),
        GNewsSource(session=session),
        CarbonPulseSource(),
    ]
