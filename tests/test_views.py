"""
tests/test_views.py
State machines, filters and auto-refresh lifecycle of the two views.
"""

import asyncio
import pytest
import pandas as pd
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from carbon_dashboard.exceptions import RegistryUnavailableError
from carbon_dashboard.models import NewsArticle, NewsSource, OffsetProject
from carbon_dashboard.registry import GOLD_STANDARD, VERRA
from carbon_dashboard.views import (
    NEWS_ERROR_MESSAGE,
    PROJECTS_ERROR_MESSAGE,
    NewsAggregatorView,
    ProjectCatalogView,
    ViewState,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_project(i, location="Brazil", credits=1000, price=12.5):
    return OffsetProject(
        id=str(i),
        name=f"Project {i}",
        location=location,
        category="REDD+",
        description="",
        credits_available=credits,
        price_per_credit=price,
        verification_standard="Verified Carbon Standard (VCS)",
    )


def make_article(id, source, title, description="", hours_ago=0):
    return NewsArticle(
        id=id,
        title=title,
        description=description,
        link=f"https://example.com/{id}",
        published_at=NOW - timedelta(hours=hours_ago),
        source_label=source.display_name,
        source=source,
    )


class FakeSource:
    def __init__(self, source, articles=None, error=None, gate=None):
        self.source = source
        self.articles = articles or []
        self.error = error
        self.gate = gate
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.articles)


@pytest.fixture
def news_sources():
    return [
        FakeSource(NewsSource.NEWSDATA, [
            make_article("n1", NewsSource.NEWSDATA, "Carbon market rally", "Prices up", 1),
        ]),
        FakeSource(NewsSource.GNEWS, [
            make_article("g1", NewsSource.GNEWS, "Carbon tax vote", "Parliament decides", 2),
            make_article("g2", NewsSource.GNEWS, "Net zero goals", "Carbon market outlook", 0),
        ]),
        FakeSource(NewsSource.CARBON_PULSE, [
            make_article("c1", NewsSource.CARBON_PULSE, "China ETS", "Emissions trading expands", 5),
        ]),
    ]


class TestProjectCatalogView:

    def test_success(self):
        client = MagicMock()
        client.fetch_projects.return_value = ([make_project(i) for i in range(9)], VERRA)
        client.to_dataframe.side_effect = lambda ps: pd.DataFrame([p.to_dict() for p in ps])
        view = ProjectCatalogView(client=client)
        assert view.state is ViewState.IDLE
        asyncio.run(view.load())
        assert view.state is ViewState.SUCCESS
        assert len(view.projects) == 9
        assert view.registry == VERRA
        summary = view.summary()
        assert summary["total_projects"] == 9
        assert summary["total_credits"] == 9000
        assert summary["avg_price"] == 12.5
        assert summary["top_location"] == "Brazil"

    def test_error_then_retry(self):
        client = MagicMock()
        client.fetch_projects.side_effect = [
            RegistryUnavailableError("both down"),
            ([make_project(1)], GOLD_STANDARD),
        ]
        view = ProjectCatalogView(client=client)
        asyncio.run(view.load())
        assert view.state is ViewState.ERROR
        assert view.error_message == PROJECTS_ERROR_MESSAGE
        assert view.projects == []

        assert asyncio.run(view.retry()) is True
        assert view.state is ViewState.SUCCESS
        assert view.registry == GOLD_STANDARD
        assert view.error_message == ""

    def test_retry_outside_error_is_noop(self):
        client = MagicMock()
        client.fetch_projects.return_value = ([make_project(1)], VERRA)
        view = ProjectCatalogView(client=client)
        asyncio.run(view.load())
        assert asyncio.run(view.retry()) is False
        assert client.fetch_projects.call_count == 1


class TestNewsAggregatorView:

    def _view(self, sources, **kwargs):
        return NewsAggregatorView(sources=sources, clock=lambda: NOW, **kwargs)

    def test_load_success(self, news_sources):
        view = self._view(news_sources)
        assert asyncio.run(view.load()) is True
        assert view.state is ViewState.SUCCESS
        assert [a.id for a in view.articles] == ["g2", "n1", "g1", "c1"]
        assert view.topics == ["carbon market", "net zero", "carbon tax", "emissions trading"]
        assert view.last_updated == NOW

    def test_partial_failure_is_silent(self, news_sources):
        news_sources[0].error = RuntimeError("quota exceeded")
        view = self._view(news_sources)
        asyncio.run(view.load())
        assert view.state is ViewState.SUCCESS
        assert view.error_message == ""
        assert {a.source for a in view.articles} == {NewsSource.GNEWS, NewsSource.CARBON_PULSE}
        assert view.failed_sources == [NewsSource.NEWSDATA]

    def test_total_failure_then_retry(self, news_sources):
        for s in news_sources:
            s.error = RuntimeError("offline")
        view = self._view(news_sources)
        asyncio.run(view.load())
        assert view.state is ViewState.ERROR
        assert view.error_message == NEWS_ERROR_MESSAGE

        assert asyncio.run(view.refresh()) is False
        for s in news_sources:
            s.error = None
        assert asyncio.run(view.retry()) is True
        assert view.state is ViewState.SUCCESS

    def test_refresh_replaces_list(self, news_sources):
        view = self._view(news_sources)
        asyncio.run(view.load())
        news_sources[1].articles = []
        asyncio.run(view.refresh())
        assert [a.id for a in view.articles] == ["n1", "c1"]
        assert view.cycles == 2

    def test_toggle_source_filters(self, news_sources):
        view = self._view(news_sources)
        asyncio.run(view.load())
        assert view.toggle_source(NewsSource.GNEWS) is True
        assert all(a.source is not NewsSource.GNEWS for a in view.filtered_articles)
        assert len(view.filtered_articles) == 2

    def test_toggling_last_source_is_noop(self, news_sources):
        view = self._view(news_sources)
        asyncio.run(view.load())
        view.toggle_source(NewsSource.GNEWS)
        view.toggle_source(NewsSource.CARBON_PULSE)
        before = view.selection.as_list()
        assert view.toggle_source(NewsSource.NEWSDATA) is False
        assert view.selection.as_list() == before == [NewsSource.NEWSDATA]
        assert [a.id for a in view.filtered_articles] == ["n1"]

    def test_topic_selection_and_clear(self, news_sources):
        view = self._view(news_sources)
        asyncio.run(view.load())
        view.select_topic("carbon market")
        assert [a.id for a in view.filtered_articles] == ["g2", "n1"]
        view.select_topic("carbon market")
        assert view.selected_topic is None
        view.select_topic("CARBON TAX")
        assert [a.id for a in view.filtered_articles] == ["g1"]
        view.clear_topic()
        assert len(view.filtered_articles) == 4

    def test_manual_refresh_ignored_while_in_flight(self, news_sources):
        async def scenario():
            view = self._view(news_sources)
            await view.load()
            gate = asyncio.Event()
            news_sources[0].gate = gate
            first = asyncio.create_task(view.refresh())
            await asyncio.sleep(0)
            assert view.is_busy
            assert view.state is ViewState.REFRESHING
            assert await view.refresh() is False
            gate.set()
            assert await first is True
            return view

        view = asyncio.run(scenario())
        assert view.state is ViewState.SUCCESS
        assert news_sources[1].calls == 2


class TestAutoRefresh:

    def test_timer_fires_cycles(self, news_sources):
        async def scenario():
            view = NewsAggregatorView(sources=news_sources, clock=lambda: NOW, refresh_interval=0.01)
            await view.start()
            assert view.timer_running
            await asyncio.sleep(0.1)
            view.close()
            return view

        view = asyncio.run(scenario())
        assert view.cycles >= 3
        assert not view.timer_running

    def test_disable_stops_further_cycles(self, news_sources):
        async def scenario():
            view = NewsAggregatorView(sources=news_sources, clock=lambda: NOW, refresh_interval=0.01)
            await view.start()
            await asyncio.sleep(0.05)
            view.set_auto_refresh(False)
            cycles = view.cycles
            await asyncio.sleep(0.1)
            assert view.cycles == cycles
            assert not view.timer_running
            view.set_auto_refresh(True)
            assert view.timer_running
            view.close()

        asyncio.run(scenario())

    def test_start_without_auto_refresh(self, news_sources):
        async def scenario():
            view = NewsAggregatorView(sources=news_sources, clock=lambda: NOW, refresh_interval=0.01)
            view.auto_refresh = False
            await view.start()
            await asyncio.sleep(0.05)
            assert view.cycles == 1
            assert not view.timer_running
            view.close()

        asyncio.run(scenario())

    def test_close_discards_in_flight_results(self, news_sources):
        async def scenario():
            view = NewsAggregatorView(sources=news_sources, clock=lambda: NOW)
            await view.load()
            gate = asyncio.Event()
            news_sources[2].gate = gate
            pending = asyncio.create_task(view.refresh())
            await asyncio.sleep(0)
            view.close()
            gate.set()
            assert await pending is False
            assert view.closed
            assert await view.refresh() is False
            return view

        view = asyncio.run(scenario())
        assert view.cycles == 1

    def test_disable_lets_in_flight_cycle_finish(self, news_sources):
        async def wait_until(predicate):
            while not predicate():
                await asyncio.sleep(0.005)

        async def scenario():
            view = NewsAggregatorView(sources=news_sources, clock=lambda: NOW, refresh_interval=0.01)
            await view.start()
            gate = asyncio.Event()
            news_sources[1].gate = gate
            news_sources[1].articles = [
                make_article("g3", NewsSource.GNEWS, "Carbon credits surge", "Buyers return", 0),
            ]
            await asyncio.wait_for(wait_until(lambda: view.is_busy), 2)
            view.set_auto_refresh(False)
            gate.set()
            await asyncio.wait_for(wait_until(lambda: not view.is_busy), 2)
            return view

        view = asyncio.run(scenario())
        assert not view.timer_running
        assert view.cycles == 2
        assert view.state is ViewState.SUCCESS
        assert [a.id for a in view.articles] == ["g3", "n1", "c1"]
