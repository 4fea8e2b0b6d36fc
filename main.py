"""
main.py
CLI entry point for the Carbon Market Dashboard.

Usage:
    python main.py projects                     # render the project catalog
    python main.py news                         # render the news feed once
    python main.py news --source gnews --topic "carbon tax"
    python main.py news --watch                 # keep refreshing every 5 minutes
    python main.py projects --output reports/   # specify output directory
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from carbon_dashboard import config
from carbon_dashboard.models import NewsSource
from carbon_dashboard.views import NewsAggregatorView, ProjectCatalogView, ViewState

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--output", type=str, default="reports",
                        help="Output directory for HTML and CSV files")
    common.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")

    parser = argparse.ArgumentParser(
        description="Carbon Market Dashboard: offset projects and market news"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("projects", parents=[common],
                   help="Fetch and render the offset project catalog")

    news = sub.add_parser("news", parents=[common],
                          help="Fetch and render the carbon market news feed")
    news.add_argument("--source", action="append", choices=[s.value for s in NewsSource],
                      help="Show only this source (repeatable)")
    news.add_argument("--topic", type=str, default=None,
                      help="Show only articles mentioning this topic")
    news.add_argument("--watch", action="store_true",
                      help="Keep running and re-render after every auto-refresh")
    news.add_argument("--no-auto-refresh", action="store_true",
                      help="Render once without arming the refresh timer; not valid with --watch")

    args = parser.parse_args(argv)
    if args.command == "news" and args.watch and args.no_auto_refresh:
        # Watch mode re-renders only after timer-driven cycles.
        parser.error("--watch needs auto-refresh; drop --no-auto-refresh")
    return args


async def run_projects(output_dir: Path) -> int:
    view = ProjectCatalogView()
    await view.load()

    html_path = output_dir / "projects.html"
    html_path.write_text(view.render_html(), encoding="utf-8")
    logger.info(f"Catalog page saved to {html_path}")

    if view.state is ViewState.ERROR:
        print(view.error_message)
        return 1

    csv_path = output_dir / "projects.csv"
    view.to_dataframe().to_csv(csv_path, index=False)
    logger.info(f"Catalog data saved to {csv_path}")

    summary = view.summary()
    avg_price = f"${summary['avg_price']:.2f}" if summary["avg_price"] is not None else "n/a"
    print("\n" + "═" * 55)
    print("  CARBON PROJECT CATALOG")
    print("═" * 55)
    print(f"  Registry:                 {summary['registry']}")
    print(f"  Projects listed:          {summary['total_projects']:,}")
    print(f"  Credits available:        {summary['total_credits']:,}")
    print(f"  Average price / credit:   {avg_price} (simulated)")
    print(f"  Most common location:     {summary['top_location']}")
    print("═" * 55 + "\n")
    return 0


def _apply_news_filters(view: NewsAggregatorView, sources, topic) -> None:
    if sources:
        wanted = {NewsSource(s) for s in sources}
        # Add first so the selection is never emptied along the way.
        for source in wanted:
            if source not in view.selection:
                view.toggle_source(source)
        for source in list(view.selection):
            if source not in wanted:
                view.toggle_source(source)
    if topic:
        view.select_topic(topic)


def _write_news(view: NewsAggregatorView, path: Path) -> None:
    path.write_text(view.render_html(), encoding="utf-8")
    logger.info(
        f"News page saved to {path} ({len(view.filtered_articles)}/{len(view.articles)} articles shown)"
    )


async def run_news(output_dir: Path, sources, topic, watch: bool, auto_refresh: bool) -> int:
    if watch and not auto_refresh:
        raise ValueError("watch mode requires auto-refresh")
    view = NewsAggregatorView()
    view.auto_refresh = watch and auto_refresh
    _apply_news_filters(view, sources, topic)
    html_path = output_dir / "news.html"

    try:
        await view.start()
        _write_news(view, html_path)
        if view.state is ViewState.ERROR:
            print(view.error_message)
            if not watch:
                return 1
        if view.topics:
            print("Trending topics: " + ", ".join(view.topics))
        if not watch:
            return 0

        seen = view.cycles
        idle_seconds = 0
        while True:
            await asyncio.sleep(1)
            idle_seconds += 1
            if view.state is ViewState.ERROR and auto_refresh and idle_seconds >= config.AUTO_REFRESH_INTERVAL:
                idle_seconds = 0
                await view.retry()
                _write_news(view, html_path)
            if view.cycles != seen:
                idle_seconds = 0
                seen = view.cycles
                _write_news(view, html_path)
    finally:
        view.close()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S"
    )
    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        if args.command == "projects":
            return asyncio.run(run_projects(output_dir))
        return asyncio.run(run_news(
            output_dir,
            sources=args.source,
            topic=args.topic,
            watch=args.watch,
            auto_refresh=not args.no_auto_refresh,
        ))
    except KeyboardInterrupt:
        logger.info("Stopped.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
