"""Test configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from src.sequencing.catalog import Catalog
from src.sequencing.config import SearchOptions
from tests.fixtures.catalogs import build_random_catalog, scenario_items


@pytest.fixture()
def scenario_catalog():
    """8 items, 4 artists, 4 albums, 4 genres, all well-formed."""
    return Catalog.build(scenario_items())


@pytest.fixture()
def random_catalog():
    return build_random_catalog(seed=123)


@pytest.fixture()
def fast_options():
    """Generous node budget, no wall-clock limit (keeps CI timing-independent)."""
    return SearchOptions(node_budget=500_000, time_budget_s=None)
