"""
aggregator.py
Fan-out/fan-in over the news sources, plus the trending-topic scan and the
client-side filters applied by the news view.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Iterable, List, Optional, Sequence

from . import config
from .exceptions import NoArticlesError
from .models import NewsArticle, NewsSource

logger = logging.getLogger(__name__)

TOPIC_KEYWORDS = [
    "carbon market",
    "emissions trading",
    "carbon credits",
    "carbon pricing",
    "net zero",
    "climate policy",
    "carbon tax",
    "carbon offset",
    "voluntary market",
    "compliance market",
    "renewable energy",
]


@dataclass
class Outcome:
    """Settled result of one concurrent branch: a value or an error, never both."""
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AggregateResult:
    articles: List[NewsArticle]
    outcomes: dict = field(default_factory=dict)  # NewsSource -> Outcome

    @property
    def failed_sources(self) -> List[NewsSource]:
        return [s for s, o in self.outcomes.items() if not o.ok]


async def settle_all(*aws: Awaitable) -> List[Outcome]:
    """
    Await every branch concurrently and capture each one's outcome.

    Unlike a plain gather, one branch failing never aborts the others; the
    returned list is in argument order.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    outcomes = []
    for result in results:
        if isinstance(result, Exception):
            outcomes.append(Outcome(error=result))
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes.append(Outcome(value=result))
    return outcomes


async def fetch_all_news(sources: Sequence) -> AggregateResult:
    """
    Fetch every source concurrently and merge the successful ones, newest first.

    Individual source failures are logged and dropped. Raises NoArticlesError
    when no source produced a single article.
    """
    logger.info(f"Fetching {len(sources)} news sources in parallel")
    start_time = time.time()

    outcomes = await settle_all(*(s.fetch() for s in sources))

    articles: List[NewsArticle] = []
    by_source = {}
    for source, outcome in zip(sources, outcomes):
        by_source[source.source] = outcome
        if outcome.ok:
            articles.extend(outcome.value or [])
        else:
            logger.warning(f"Error fetching from {source.source.display_name}: {outcome.error}")

    articles.sort(key=lambda a: a.published_at, reverse=True)

    duration = time.time() - start_time
    successful = sum(1 for o in outcomes if o.ok)
    logger.info(f"Fetched {len(articles)} articles from {successful}/{len(sources)} sources in {duration:.2f}s")

    if not articles:
        raise NoArticlesError("Failed to fetch news from all sources")
    return AggregateResult(articles=articles, outcomes=by_source)


def extract_topics(
    articles: Iterable[NewsArticle],
    keywords: Sequence[str] = TOPIC_KEYWORDS,
    limit: int = config.MAX_TRENDING_TOPICS,
) -> List[str]:
    """Keywords found in at least one article, in first-encountered order, capped at ``limit``."""
    topics: List[str] = []
    for article in articles:
        content = f"{article.title} {article.description}".lower()
        for keyword in keywords:
            if keyword not in topics and keyword.lower() in content:
                topics.append(keyword)
    return topics[:limit]


def filter_articles(
    articles: Iterable[NewsArticle],
    selected_sources: Iterable[NewsSource],
    topic: Optional[str] = None,
) -> List[NewsArticle]:
    selected = set(selected_sources)
    return [
        a for a in articles
        if a.source in selected and (not topic or a.matches(topic))
    ]


class SourceSelection:
    """
    The set of news sources currently shown. Never empty: toggling off the
    last selected source leaves the selection unchanged.
    """

    def __init__(self, sources: Iterable[NewsSource] = tuple(NewsSource)):
        self._selected = list(dict.fromkeys(sources))
        if not self._selected:
            raise ValueError("At least one source must be selected")

    def __contains__(self, source) -> bool:
        return source in self._selected

    def __iter__(self):
        return iter(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def toggle(self, source: NewsSource) -> bool:
        """Flip ``source``; returns False when the toggle was refused."""
        source = NewsSource(source)
        if source in self._selected:
            if len(self._selected) == 1:
                return False
            self._selected.remove(source)
        else:
            self._selected.append(source)
        return True

    def as_list(self) -> List[NewsSource]:
        return list(self._selected)
