"""
config.py
---------
Endpoints, request defaults and tunables for the dashboard views.

Access tokens fall back to the public demo keys embedded below; set
NEWSDATA_API_KEY / GNEWS_API_TOKEN to use your own.
"""

import os

# ---------------------------------------------------------------------------
# Project registries
# ---------------------------------------------------------------------------
VERRA_PROJECTS_URL = "https://registry.verra.org/api/projects"
VERRA_PROJECT_DETAIL_URL = "https://registry.verra.org/app/projectDetail/VCS/{project_id}"
GOLD_STANDARD_PROJECTS_URL = "https://api.goldstandard.org/projects"

PROJECT_PAGE_SIZE = 9
VERRA_STANDARD_LABEL = "Verified Carbon Standard (VCS)"
GOLD_STANDARD_LABEL = "Gold Standard"

# Simulated market price, USD per tCO2e. Not real market data.
SIMULATED_PRICE_RANGE = (10.0, 25.0)
GOLD_STANDARD_DEFAULT_PRICE = 15.00

# ---------------------------------------------------------------------------
# News sources
# ---------------------------------------------------------------------------
NEWSDATA_URL = "https://newsdata.io/api/1/news"
NEWSDATA_API_KEY = os.getenv("NEWSDATA_API_KEY", "pub_8156513aabd8c7e895e4b7736871655fb118d")
NEWSDATA_QUERY = "carbon market OR carbon credits OR emissions trading"
NEWSDATA_CATEGORIES = "business,environment"

GNEWS_URL = "https://gnews.io/api/v4/search"
GNEWS_API_TOKEN = os.getenv("GNEWS_API_TOKEN", "90690f4d8daa77e781d7dc941471c730")
GNEWS_QUERY = "carbon market OR carbon trading OR emissions"
GNEWS_MAX_RESULTS = 10

CARBON_PULSE_DELAY = 0.5  # seconds, stands in for network latency

NEWS_LANGUAGE = "en"

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------
DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "carbon-market-dashboard/0.1 (research purposes)",
}
REQUEST_TIMEOUT = 30

AUTO_REFRESH_INTERVAL = 5 * 60  # seconds
RECENT_WINDOW = 60 * 60  # articles newer than this are flagged NEW
MAX_TRENDING_TOPICS = 6
