"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Sample plots and observations
- Blueprint registry
- Mock store client
- FastAPI test client
"""
import os

# Retries must not sleep during tests; set before settings are loaded.
os.environ.setdefault("RETRY_MIN_WAIT", "0")
os.environ.setdefault("RETRY_MAX_WAIT", "0")

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from fieldplots.main import app
from fieldplots.domain.blueprints import default_registry
from fieldplots.domain.models import (
    GeoLocation,
    Plot,
    ProgressStatus,
    SamplingUnitProgress,
    Stem,
    TreeObservation,
    VegetationObservation,
)
from fieldplots.infrastructure.observation_store_client import ObservationStoreClient
from fieldplots.middleware.rate_limiter import limiter
from fieldplots.services.domain.layout_generator import commit_layout
from fieldplots.utils.tree_traversal import iter_sampling_units
from tests.factories import make_tree


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_plot() -> Plot:
    """A 10x10 quadrant plot near Nairobi."""
    return Plot(
        id="plot-1",
        module_id="module-1",
        blueprint_id="std-10x10-4q",
        blueprint_version=1,
        name="Ridge plot 1",
        coordinates=GeoLocation(lat=-1.2921, lng=36.8219),
        orientation=0.0,
    )


@pytest.fixture
def sample_layout(sample_plot):
    """Committed layout of the sample plot."""
    blueprint = default_registry.get(sample_plot.blueprint_id, sample_plot.blueprint_version)
    return commit_layout(blueprint, sample_plot.id)


@pytest.fixture
def sample_unit_ids(sample_layout) -> list[str]:
    """Ids of the four quadrants of the sample layout."""
    return [node.id for node in iter_sampling_units(sample_layout)]


@pytest.fixture
def sample_trees() -> list[TreeObservation]:
    """
    Trees across three plots.

    plot-1: Acacia x2, Ficus
    plot-2: Acacia, Croton
    plot-3: Ficus, one unidentified tree
    """
    return [
        make_tree("t1", "Acacia tortilis", "plot-1"),
        make_tree("t2", "Acacia tortilis", "plot-1", gbh=62.8),
        make_tree("t3", "Ficus sycomorus", "plot-1", gbh=100.0),
        make_tree("t4", "Acacia tortilis", "plot-2"),
        make_tree("t5", "Croton megalocarpus", "plot-2", gbh=45.0),
        make_tree("t6", "Ficus sycomorus", "plot-3", gbh=80.0),
        make_tree("t7", "", "plot-3", is_unknown=True),
    ]


@pytest.fixture
def multi_stem_tree() -> TreeObservation:
    """Tree with two 30 cm and 40 cm stems (equivalent single stem 50 cm)."""
    return make_tree(
        "ms1",
        "Croton megalocarpus",
        gbh=None,
        stems=[Stem(gbh=30.0), Stem(gbh=40.0)],
    )


@pytest.fixture
def sample_vegetation() -> list[VegetationObservation]:
    """Herb-layer records of plot-1."""
    return [
        VegetationObservation(id="v1", plot_id="plot-1", sampling_unit_id="h1",
                              species_name="Commelina benghalensis", abundance_count=6),
        VegetationObservation(id="v2", plot_id="plot-1", sampling_unit_id="h2",
                              species_name="Bidens pilosa", abundance_count=2),
        VegetationObservation(id="v3", plot_id="plot-1", sampling_unit_id="h3",
                              species_name="Bidens pilosa"),
        VegetationObservation(id="v4", plot_id="plot-1", sampling_unit_id="h4",
                              species_name="", is_unknown=True, abundance_count=9),
    ]


# ============================================================
# Mock Store Client Fixtures
# ============================================================

@pytest.fixture
def mock_store_client(sample_plot, sample_trees, sample_vegetation, sample_unit_ids):
    """Create a mock observation store client."""
    plots = [
        sample_plot,
        sample_plot.model_copy(update={"id": "plot-2", "name": "Ridge plot 2"}),
        sample_plot.model_copy(update={"id": "plot-3", "name": "Ridge plot 3"}),
    ]
    mock_client = AsyncMock(spec=ObservationStoreClient)
    mock_client.get_plot.return_value = sample_plot
    mock_client.get_plots.return_value = plots
    mock_client.get_tree_observations.return_value = sample_trees
    mock_client.get_vegetation_observations.return_value = sample_vegetation
    mock_client.get_sampling_unit_progress.return_value = [
        SamplingUnitProgress(plot_id="plot-1", sampling_unit_id=unit_id, status=ProgressStatus.DONE)
        for unit_id in sample_unit_ids[:2]
    ]
    return mock_client


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with a fresh rate limit window."""
    limiter.reset()
    yield


@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_test_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for FastAPI."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
