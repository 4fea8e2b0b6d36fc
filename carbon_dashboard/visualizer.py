"""
visualizer.py
HTML card grids and Plotly charts for the project catalog and news pages.
Every render_* function returns a complete standalone HTML document.
"""

import html
import logging
from datetime import datetime
from typing import Iterable, List, Optional

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .models import UNKNOWN_TIME, NewsArticle, NewsSource, OffsetProject

logger = logging.getLogger(__name__)

SOURCE_COLORS = {
    NewsSource.NEWSDATA: "#2563eb",
    NewsSource.GNEWS: "#059669",
    NewsSource.CARBON_PULSE: "#d97706",
}

PAGE_CSS = """
body { font-family: system-ui, sans-serif; margin: 0 auto; max-width: 1200px; padding: 24px; color: #111827; }
h1 { margin-bottom: 4px; }
.subtitle, .meta { color: #6b7280; font-size: 14px; }
.grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(320px, 1fr)); gap: 24px; }
.card { border: 2px solid #e5e7eb; border-radius: 8px; padding: 16px; display: flex; flex-direction: column; position: relative; }
.card img { width: 100%; height: 180px; object-fit: cover; border-radius: 8px; margin-bottom: 12px; }
.badge { display: inline-block; padding: 2px 8px; border-radius: 999px; font-size: 12px; background: #f3f4f6; }
.new { position: absolute; top: 12px; right: 12px; background: #ef4444; color: white; font-weight: bold; }
.chip { display: inline-block; padding: 6px 14px; margin: 0 6px 6px 0; border-radius: 999px; background: #f3f4f6; font-size: 14px; }
.chip.selected { background: #059669; color: white; }
.stats { display: flex; justify-content: space-between; border-top: 1px solid #e5e7eb; padding-top: 8px; margin-top: auto; font-size: 14px; }
.empty, .error { text-align: center; padding: 48px 0; }
.retry { color: #059669; font-weight: 600; }
"""


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{html.escape(title)}</title>"
        f"<style>{PAGE_CSS}</style></head>\n"
        f"<body>\n{body}\n</body></html>\n"
    )


def _esc(value) -> str:
    return html.escape(str(value)) if value is not None else ""


def relative_time(published_at: datetime, now: datetime) -> str:
    """Human distance between two aware datetimes, e.g. '3 hours ago'."""
    if published_at == UNKNOWN_TIME:
        return "date unknown"
    seconds = (now - published_at).total_seconds()
    suffix = "ago"
    if seconds < 0:
        seconds, suffix = -seconds, "from now"
    minutes = int(seconds // 60)
    if minutes < 1:
        return "less than a minute " + suffix
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} {suffix}"
    hours = minutes // 60
    if hours < 24:
        return f"about {hours} hour{'s' if hours != 1 else ''} {suffix}"
    days = hours // 24
    return f"{days} day{'s' if days != 1 else ''} {suffix}"


# ─── Charts ────────────────────────────────────────────────────────────────

def credits_chart(projects: List[OffsetProject]) -> go.Figure:
    """Horizontal bar chart of available credits per project."""
    if not projects:
        return go.Figure()
    df = pd.DataFrame([p.to_dict() for p in projects])
    fig = px.bar(
        df.sort_values("credits_available", ascending=True),
        x="credits_available",
        y="name",
        color="price_per_credit",
        color_continuous_scale="Greens",
        orientation="h",
        title="Available Credits by Project",
        labels={
            "credits_available": "Available Credits (tCO₂e)",
            "name": "",
            "price_per_credit": "Price / credit (USD)",
        },
        template="plotly_white",
    )
    fig.update_layout(height=max(300, len(df) * 45))
    return fig


def source_breakdown_chart(articles: Iterable[NewsArticle]) -> go.Figure:
    """Article count per news source."""
    df = pd.DataFrame(
        [{"source": a.source.display_name} for a in articles]
    )
    if df.empty:
        return go.Figure()
    counts = df.groupby("source").size().reset_index(name="articles")
    fig = px.bar(
        counts,
        x="source",
        y="articles",
        color="source",
        color_discrete_map={s.display_name: c for s, c in SOURCE_COLORS.items()},
        title="Articles by Source",
        template="plotly_white",
    )
    fig.update_layout(showlegend=False, height=300, xaxis_title="", yaxis_title="Articles")
    return fig


def _figure_html(fig: go.Figure) -> str:
    if not fig.data:
        return ""
    return fig.to_html(full_html=False, include_plotlyjs="cdn")


# ─── Project catalog ───────────────────────────────────────────────────────

def project_card(project: OffsetProject) -> str:
    image = f'<img src="{_esc(project.image_url)}" alt="{_esc(project.name)}">' if project.image_url else ""
    link = (
        f'<a href="{_esc(project.project_url)}" target="_blank" rel="noopener noreferrer">View Details ↗</a>'
        if project.project_url else ""
    )
    return f"""
<div class="card">
  {image}
  <span class="badge">{_esc(project.verification_standard)}</span>
  <h3>{_esc(project.name)}</h3>
  <div class="meta">{_esc(project.location)} · {_esc(project.category)}</div>
  <p>{_esc(project.description)}</p>
  <div class="stats"><span>Available Credits</span><strong>{project.credits_available:,}</strong></div>
  <div class="stats"><span>Price per Credit</span><strong>${project.price_per_credit:.2f}</strong></div>
  {link}
</div>"""


def render_projects_page(view) -> str:
    """Render the catalog view in whatever state it is in."""
    header = (
        "<h1>Carbon Projects</h1>"
        '<p class="subtitle">Explore verified carbon reduction and removal projects worldwide</p>'
    )
    if view.state in ("idle", "loading"):
        return _page("Carbon Projects", header + '<div class="empty">Loading…</div>')
    if view.state == "error":
        body = (
            f'<div class="error"><h3>{_esc(view.error_message)}</h3>'
            '<a class="retry" href="">Try Again</a></div>'
        )
        return _page("Carbon Projects", header + body)

    cards = "".join(project_card(p) for p in view.projects)
    summary = view.summary()
    avg_price = f"${summary['avg_price']:.2f}" if summary["avg_price"] is not None else "n/a"
    meta = (
        f'<p class="meta">{summary["total_projects"]} projects · '
        f'{summary["total_credits"]:,} credits available · average price {avg_price}</p>'
    )
    chart = _figure_html(credits_chart(view.projects))
    logger.debug(f"Rendered {len(view.projects)} project cards")
    return _page("Carbon Projects", header + meta + f'<div class="grid">{cards}</div>' + chart)


# ─── News feed ─────────────────────────────────────────────────────────────

def news_card(article: NewsArticle, now: datetime) -> str:
    color = SOURCE_COLORS.get(article.source, "#e5e7eb")
    image = f'<img src="{_esc(article.image_url)}" alt="{_esc(article.title)}">' if article.image_url else ""
    new_badge = '<span class="badge new">NEW</span>' if article.is_new else ""
    category = f' <span class="badge">{_esc(article.category)}</span>' if article.category else ""
    return f"""
<div class="card" style="border-color: {color}">
  {image}{new_badge}
  <div class="meta">{_esc(relative_time(article.published_at, now))}{category}</div>
  <h3>{_esc(article.title)}</h3>
  <p>{_esc(article.description)}</p>
  <div class="stats">
    <span style="color: {color}">{_esc(article.source_label)}</span>
    <a href="{_esc(article.link)}" target="_blank" rel="noopener noreferrer">Read More ↗</a>
  </div>
</div>"""


def _source_chips(selected: Iterable[NewsSource]) -> str:
    selected = set(selected)
    chips = []
    for source in NewsSource:
        css = "chip selected" if source in selected else "chip"
        chips.append(f'<span class="{css}">{_esc(source.display_name)}</span>')
    return f'<div class="sources">{"".join(chips)}</div>'


def _topic_chips(topics: List[str], selected_topic: Optional[str]) -> str:
    if not topics:
        return ""
    chips = []
    if selected_topic:
        chips.append('<span class="chip">All Topics</span>')
    for topic in topics:
        css = "chip selected" if topic == selected_topic else "chip"
        chips.append(f'<span class="{css}">{_esc(topic)}</span>')
    return f'<h2 class="meta">Trending Topics</h2><div class="topics">{"".join(chips)}</div>'


def render_news_page(view, now: datetime) -> str:
    """Render the news view: header, filters, card grid and source chart."""
    title = "Carbon Market News"
    if view.state in ("idle", "loading"):
        return _page(title, f"<h1>{title}</h1>" + '<div class="empty">Loading…</div>')
    if view.state == "error":
        body = (
            f'<div class="error"><h3>{_esc(view.error_message)}</h3>'
            '<a class="retry" href="">Try Again</a></div>'
        )
        return _page(title, f"<h1>{title}</h1>" + body)

    status = "Refreshing…" if view.state == "refreshing" else "Refresh"
    auto = "on" if view.auto_refresh else "off"
    header = (
        f"<h1>{title}</h1>"
        '<p class="subtitle">Stay updated with the latest news and developments in the carbon market</p>'
        f'<p class="meta">Auto-refresh: {auto} · {status}'
    )
    if view.last_updated is not None:
        header += f" · Last updated: {view.last_updated.strftime('%H:%M:%S')}"
    header += "</p>"

    filtered = view.filtered_articles
    if filtered:
        grid = '<div class="grid">' + "".join(news_card(a, now) for a in filtered) + "</div>"
    else:
        grid = (
            '<div class="empty"><h3>No news articles found</h3>'
            '<p class="meta">Try changing your filters or refreshing the page</p></div>'
        )
    chart = _figure_html(source_breakdown_chart(view.articles))
    body = header + _source_chips(view.selection) + _topic_chips(view.topics, view.selected_topic) + grid + chart
    logger.debug(f"Rendered {len(filtered)}/{len(view.articles)} articles")
    return _page(title, body)
