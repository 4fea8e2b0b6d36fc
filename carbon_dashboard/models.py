"""
models.py
Normalized record shapes shared by the project catalog and the news feed.
Upstream payloads of any shape are mapped into these before rendering.
"""

import random
import string
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import pandas as pd

# Sorts after every real timestamp when ordering newest-first.
UNKNOWN_TIME = datetime.min.replace(tzinfo=timezone.utc)


class NewsSource(str, Enum):
    NEWSDATA = "newsdata"
    GNEWS = "gnews"
    CARBON_PULSE = "carbonpulse"

    @property
    def display_name(self) -> str:
        return SOURCE_DISPLAY_NAMES[self]


SOURCE_DISPLAY_NAMES = {
    NewsSource.NEWSDATA: "NewsData",
    NewsSource.GNEWS: "GNews",
    NewsSource.CARBON_PULSE: "Carbon Pulse",
}


@dataclass
class OffsetProject:
    id: str
    name: str
    location: str
    category: str
    description: str
    credits_available: int
    price_per_credit: float
    verification_standard: str
    project_url: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NewsArticle:
    id: str
    title: str
    description: str
    link: str
    published_at: datetime
    source_label: str
    source: NewsSource
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_new: bool = False

    def matches(self, text: str) -> bool:
        """Case-insensitive containment test against title or description."""
        needle = text.lower()
        return needle in (self.title or "").lower() or needle in (self.description or "").lower()


def parse_timestamp(value) -> datetime:
    """
    Parse an upstream publication timestamp into an aware UTC datetime.
    Naive values are taken as UTC; anything unparseable becomes UNKNOWN_TIME.
    """
    if value is None or value == "":
        return UNKNOWN_TIME
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(ts):
        return UNKNOWN_TIME
    return ts.to_pydatetime()


def random_token(length: int = 9) -> str:
    """Short lowercase alphanumeric token for ids the upstream did not supply."""
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choices(alphabet, k=length))


def is_recent(published_at: datetime, fetched_at: datetime, window_seconds: float) -> bool:
    return (fetched_at - published_at).total_seconds() < window_seconds
