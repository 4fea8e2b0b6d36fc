"""
registry.py
-----------
Client for the project registries behind the catalog view.

The Verra registry is queried first. If that request fails for any reason
(network, HTTP status, undecodable or unexpected payload) a single request
is made to the Gold Standard registry instead. Whichever registry answers
populates the whole list; no records are merged across registries.

Usage:
    from carbon_dashboard.registry import ProjectRegistryClient
    client = ProjectRegistryClient()
    projects, registry = client.fetch_projects()
    df = client.to_dataframe(projects)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import requests

from . import config
from .exceptions import RegistryFetchError, RegistryUnavailableError
from .models import OffsetProject

logger = logging.getLogger(__name__)

VERRA = "verra"
GOLD_STANDARD = "gold_standard"


class ProjectRegistryClient:
    """Fetches one page of registered offset projects.

    Parameters
    ----------
    timeout : int
        Timeout in seconds per request.
    page_size : int
        Number of projects requested from either registry.
    rng : numpy.random.Generator, optional
        Source of the simulated per-credit prices. Seed it for reproducible output.
    session : requests.Session, optional
        Pre-built session; one with the default headers is created otherwise.
    """

    def __init__(
        self,
        timeout: int = config.REQUEST_TIMEOUT,
        page_size: int = config.PROJECT_PAGE_SIZE,
        rng: Optional[np.random.Generator] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.page_size = page_size
        self.rng = rng if rng is not None else np.random.default_rng()
        self._session = session if session is not None else self._build_session()

    def _build_session(self) -> requests.Session:
        # No retry adapter: the fallback registry is the only second attempt.
        session = requests.Session()
        session.headers.update(config.DEFAULT_HEADERS)
        return session

    # ─── Public fetch methods ──────────────────────────────────────────────

    def fetch_projects(self) -> Tuple[List[OffsetProject], str]:
        """Fetch from Verra, falling back to Gold Standard once.

        Returns
        -------
        (list of OffsetProject, str)
            The normalized projects and the registry that supplied them.

        Raises
        ------
        RegistryUnavailableError
            When both registries fail.
        """
        try:
            return self.fetch_primary(), VERRA
        except RegistryFetchError as primary_exc:
            logger.warning(f"Primary registry failed ({primary_exc}); trying Gold Standard")
            try:
                return self.fetch_secondary(), GOLD_STANDARD
            except RegistryFetchError as backup_exc:
                logger.error(f"Fallback registry failed: {backup_exc}")
                raise RegistryUnavailableError(
                    f"No registry available (primary: {primary_exc}; fallback: {backup_exc})"
                ) from backup_exc

    def fetch_primary(self) -> List[OffsetProject]:
        """Newest registered VCS projects from the Verra registry."""
        params = {
            "$limit": self.page_size,
            "$sort[createdAt]": -1,
            "status": "registered",
            "type": "VCS",
        }
        records = self._get_records(VERRA, config.VERRA_PROJECTS_URL, params)
        projects = [self.clean_verra_record(r) for r in records]
        logger.info(f"Fetched {len(projects)} projects from Verra")
        return projects

    def fetch_secondary(self) -> List[OffsetProject]:
        """Active projects from the Gold Standard registry."""
        params = {"limit": self.page_size, "status": "active"}
        records = self._get_records(GOLD_STANDARD, config.GOLD_STANDARD_PROJECTS_URL, params)
        projects = [self.clean_gold_standard_record(r) for r in records]
        logger.info(f"Fetched {len(projects)} projects from Gold Standard")
        return projects

    def _get_records(self, registry: str, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            resp = self._session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.exceptions.RequestException as e:
            raise RegistryFetchError(registry, f"request failed: {e}") from e
        except ValueError as e:
            raise RegistryFetchError(registry, f"invalid JSON: {e}") from e

        # Both registries wrap results as {"data": [...]}
        records = data.get("data") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise RegistryFetchError(registry, "unexpected payload shape")
        return [r for r in records if isinstance(r, dict)]

    # ─── Transformation ────────────────────────────────────────────────────

    def clean_verra_record(self, raw: Dict[str, Any]) -> OffsetProject:
        """Normalize a raw Verra record. Pricing is simulated."""
        project_id = str(raw.get("id", ""))
        return OffsetProject(
            id=project_id,
            name=raw.get("name") or "",
            location=raw.get("country") or "",
            category=raw.get("projectType") or "",
            description=raw.get("description") or "No description available",
            credits_available=_to_int(raw.get("estimatedAnnualEmissionReductions")),
            price_per_credit=self.simulated_price(),
            verification_standard=config.VERRA_STANDARD_LABEL,
            project_url=config.VERRA_PROJECT_DETAIL_URL.format(project_id=project_id),
            image_url=raw.get("proponentLogo") or None,
        )

    def clean_gold_standard_record(self, raw: Dict[str, Any]) -> OffsetProject:
        """Normalize a raw Gold Standard record."""
        price = _to_float(raw.get("creditPrice"))
        return OffsetProject(
            id=str(raw.get("id", "")),
            name=raw.get("title") or "",
            location=raw.get("country") or "",
            category=raw.get("projectType") or "",
            description=raw.get("description") or "No description available",
            credits_available=_to_int(raw.get("availableCredits")),
            price_per_credit=round(price if price else config.GOLD_STANDARD_DEFAULT_PRICE, 2),
            verification_standard=config.GOLD_STANDARD_LABEL,
            project_url=raw.get("projectUrl") or None,
        )

    def simulated_price(self) -> float:
        low, high = config.SIMULATED_PRICE_RANGE
        return round(float(self.rng.uniform(low, high)), 2)

    def to_dataframe(self, projects: List[OffsetProject]) -> pd.DataFrame:
        """Convert normalized projects to a DataFrame (one row per project)."""
        if not projects:
            logger.warning("Empty project list.")
            return pd.DataFrame()
        return pd.DataFrame([p.to_dict() for p in projects])


def _to_int(value: Any) -> int:
    number = _to_float(value)
    return int(number) if number is not None else 0


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(str(value).replace(",", ""))
    except (ValueError, TypeError):
        return None
    return number if np.isfinite(number) else None
