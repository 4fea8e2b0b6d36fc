"""
Carbon Market Dashboard
Offset project catalog and aggregated carbon-market news feed.
"""
from .models import NewsArticle, NewsSource, OffsetProject
from .registry import ProjectRegistryClient
from .views import NewsAggregatorView, ProjectCatalogView, ViewState

__version__ = "0.1.0"
__all__ = [
    "NewsArticle",
    "NewsSource",
    "OffsetProject",
    "ProjectRegistryClient",
    "NewsAggregatorView",
    "ProjectCatalogView",
    "ViewState",
]
