"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle with mocked external dependencies.
"""
import math

import pytest

from fieldplots.main import app
from fieldplots.api.dependencies import get_survey_analysis_service
from fieldplots.domain.blueprints import default_registry
from fieldplots.infrastructure.observation_store_client import ObservationStoreError
from fieldplots.services.application.survey_analysis_service import SurveyAnalysisService
from fieldplots.utils.tree_traversal import iter_nodes
from tests.factories import make_tree


def as_json(records) -> list[dict]:
    return [record.model_dump(mode="json") for record in records]


@pytest.fixture
def service_override(mock_store_client):
    """Route store-backed endpoints through the mock store client."""
    service = SurveyAnalysisService(store_client=mock_store_client, registry=default_registry)
    app.dependency_overrides[get_survey_analysis_service] = lambda: service
    yield mock_store_client
    app.dependency_overrides.clear()


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        """Health endpoint should return healthy status."""
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_health_endpoint_async(self, async_test_client):
        """Health endpoint should also answer over the async client."""
        response = await async_test_client.get("/health")

        assert response.status_code == 200


# ============================================================
# Blueprint Endpoint Tests
# ============================================================

class TestBlueprintEndpoints:
    """Tests for the blueprint catalog and layout generation."""

    def test_list_blueprints(self, test_client):
        """Catalog should list every built-in blueprint."""
        response = test_client.get("/api/v1/blueprints")

        assert response.status_code == 200
        ids = {bp["id"] for bp in response.json()["blueprints"]}
        assert ids == {"std-10x10-4q", "std-20x20-4q", "cir-10m-full", "std-10x10-herb-subplots"}

    def test_get_blueprint(self, test_client):
        """A single blueprint should be returned with its versions."""
        response = test_client.get("/api/v1/blueprints/std-10x10-4q")

        assert response.status_code == 200
        data = response.json()
        assert data["blueprint"]["version"] == 1
        assert data["blueprint"]["root"]["children_generator"]["method"] == "GRID"
        assert data["versions"] == [1]

    def test_get_unknown_version(self, test_client):
        """Unknown versions should return 404."""
        response = test_client.get("/api/v1/blueprints/std-10x10-4q", params={"version": 9})

        assert response.status_code == 404

    def test_committed_layout(self, test_client):
        """A layout with plot id should be stable and reproducible."""
        url = "/api/v1/blueprints/std-10x10-4q/layout"
        first = test_client.post(url, json={"plot_id": "plot-9"})
        second = test_client.post(url, json={"plot_id": "plot-9"})

        assert first.status_code == 200
        data = first.json()
        assert data["stable"] is True
        assert data["sampling_unit_count"] == 4
        assert data["root"]["id"] == second.json()["root"]["id"]
        assert [c["label"] for c in data["root"]["children"]] == ["Q1", "Q2", "Q3", "Q4"]

    def test_preview_layout(self, test_client):
        """A layout without plot id should be an unstable preview."""
        response = test_client.post("/api/v1/blueprints/std-10x10-herb-subplots/layout", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["stable"] is False
        assert data["plot_id"] is None
        assert data["sampling_unit_count"] == 4

    def test_layout_with_overrides(self, test_client):
        """Root overrides should rescale the generated cells."""
        response = test_client.post(
            "/api/v1/blueprints/std-10x10-4q/layout",
            json={
                "plot_id": "plot-9",
                "overrides": {"root_dimensions": {"kind": "RECTANGLE", "width": 12, "length": 8}},
            },
        )

        assert response.status_code == 200
        cell = response.json()["root"]["children"][0]["shape"]
        assert (cell["width"], cell["length"]) == (6.0, 4.0)

    def test_layout_unknown_blueprint(self, test_client):
        """Unknown blueprints should return 404."""
        response = test_client.post("/api/v1/blueprints/nope/layout", json={"plot_id": "p"})

        assert response.status_code == 404

    def test_layout_empty_plot_id(self, test_client):
        """An empty plot id cannot produce a committed layout."""
        response = test_client.post("/api/v1/blueprints/std-10x10-4q/layout", json={"plot_id": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"


# ============================================================
# Analysis Endpoint Tests
# ============================================================

class TestAnalysisEndpoints:
    """Tests for stateless analysis endpoints."""

    def test_diversity(self, test_client):
        """Even counts should give H' = ln 4 and 1 - D = 0.75."""
        response = test_client.post("/api/v1/analysis/diversity", json={"counts": [10, 10, 10, 10]})

        assert response.status_code == 200
        data = response.json()
        assert data["shannon"] == pytest.approx(math.log(4))
        assert data["simpson"] == pytest.approx(0.75)
        assert data["richness"] == 4
        assert data["individuals"] == 40

    def test_diversity_negative_counts(self, test_client):
        """Negative counts should be a 400."""
        response = test_client.post("/api/v1/analysis/diversity", json={"counts": [3, -1]})

        assert response.status_code == 400

    def test_community(self, test_client, sample_trees):
        """Community metrics should be sorted by IVI and sum to 300."""
        response = test_client.post(
            "/api/v1/analysis/community",
            json={"observations": as_json(sample_trees), "plot_count": 3},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["species_count"] == 3
        assert data["species"][0]["species_name"] == "Ficus sycomorus"
        assert sum(s["ivi"] for s in data["species"]) == pytest.approx(300.0)

    def test_community_negative_plot_count(self, test_client, sample_trees):
        """Negative plot counts should be a 400."""
        response = test_client.post(
            "/api/v1/analysis/community",
            json={"observations": as_json(sample_trees), "plot_count": -1},
        )

        assert response.status_code == 400

    def test_sac_seeded(self, test_client, sample_trees):
        """A seeded SAC should be reproducible and chart-ready."""
        body = {
            "observations": as_json(sample_trees),
            "plot_ids": ["plot-1", "plot-2", "plot-3"],
            "iterations": 30,
            "seed": 42,
        }
        first = test_client.post("/api/v1/analysis/sac", json=body)
        second = test_client.post("/api/v1/analysis/sac", json=body)

        assert first.status_code == 200
        data = first.json()
        assert data["points"] == second.json()["points"]
        assert data["points"][-1]["richness"] == 3.0
        assert len(data["series"]["data"]) == 3
        assert "ci_lower" in data["series"]["data"][0]["meta"]
        assert data["scales"]["left"]["max"] >= 3.0

    def test_sac_ordered(self, test_client, sample_trees):
        """Ordered accumulation should follow the given plot order."""
        response = test_client.post("/api/v1/analysis/sac", json={
            "observations": as_json(sample_trees),
            "plot_ids": ["plot-3", "plot-1", "plot-2"],
            "ordered": True,
        })

        assert response.status_code == 200
        assert [p["richness"] for p in response.json()["points"]] == [1.0, 2.0, 3.0]

    def test_sac_invalid_iterations(self, test_client, sample_trees):
        """Zero iterations should be a 400."""
        response = test_client.post("/api/v1/analysis/sac", json={
            "observations": as_json(sample_trees),
            "plot_ids": ["plot-1"],
            "iterations": 0,
        })

        assert response.status_code == 400
        assert "iterations" in response.json()["detail"]

    def test_stand_structure(self, test_client, sample_trees):
        """Stand structure should scale to per-hectare values."""
        response = test_client.post("/api/v1/analysis/stand-structure", json={
            "trees": as_json(sample_trees),
            "area_m2": 100.0,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["stem_density_ha"] == pytest.approx(700.0)
        assert data["shannon"] is None  # fewer than ten trees

    def test_request_validation(self, test_client):
        """Malformed bodies should be rejected by request validation."""
        response = test_client.post("/api/v1/analysis/diversity", json={"counts": "many"})

        assert response.status_code == 422


# ============================================================
# Store-backed Endpoint Tests
# ============================================================

class TestSurveyEndpoints:
    """Tests for plot and module endpoints backed by the record store."""

    def test_plot_layout(self, test_client, service_override, sample_layout):
        """A stored plot should get the same ids as a direct commit."""
        response = test_client.get("/api/v1/plots/plot-1/layout")

        assert response.status_code == 200
        data = response.json()
        assert data["plot_id"] == "plot-1"
        assert data["root"]["id"] == sample_layout.id
        assert data["footprints"] is None
        service_override.get_plot.assert_called_once_with("plot-1")

    def test_plot_layout_georeferenced(self, test_client, service_override, sample_layout):
        """Georeferenced layouts should include a ring per node."""
        response = test_client.get("/api/v1/plots/plot-1/layout", params={"georeferenced": True})

        assert response.status_code == 200
        footprints = response.json()["footprints"]
        assert set(footprints) == {n.id for n in iter_nodes(sample_layout)}
        vertex = footprints[sample_layout.id][0]
        assert vertex["latitude"] == pytest.approx(-1.2921, abs=1e-3)
        assert vertex["longitude"] == pytest.approx(36.8219, abs=1e-3)

    def test_plot_not_found_passthrough(self, test_client, service_override):
        """Store 404s should pass through."""
        service_override.get_plot.side_effect = ObservationStoreError("Plot not found", status_code=404)

        response = test_client.get("/api/v1/plots/missing/layout")

        assert response.status_code == 404
        assert response.json()["error"] == "Observation store error"

    def test_plot_with_unknown_blueprint_version(self, test_client, service_override, sample_plot):
        """A plot pointing at an unregistered version should be a 404."""
        service_override.get_plot.return_value = sample_plot.model_copy(
            update={"blueprint_version": 7}
        )

        response = test_client.get("/api/v1/plots/plot-1/layout")

        assert response.status_code == 404
        assert "v7" in response.json()["detail"]

    def test_plot_summary(self, test_client, service_override):
        """Summary should use the area of completed quadrants."""
        response = test_client.get("/api/v1/plots/plot-1/summary")

        assert response.status_code == 200
        data = response.json()
        assert data["surveyed_area_m2"] == pytest.approx(50.0)
        assert data["stand"]["stem_density_ha"] == pytest.approx(7 * 10_000 / 50)
        assert data["herb_layer"]["richness"] == 2

    def test_module_analysis(self, test_client, service_override):
        """Module report should combine diversity, community and SAC."""
        response = test_client.get("/api/v1/modules/module-1/analysis", params={"seed": 3})

        assert response.status_code == 200
        data = response.json()
        assert data["plot_count"] == 3
        assert data["tree_count"] == 7
        assert data["diversity"]["richness"] == 3
        assert data["community"][0]["species_name"] == "Ficus sycomorus"
        assert [p["plots_sampled"] for p in data["sac"]] == [1, 2, 3]
        assert data["sac"][-1]["richness"] == 3.0
        assert len(data["sac_series"]["data"]) == 3
        service_override.get_tree_observations.assert_called_once_with(module_id="module-1")

    def test_module_analysis_invalid_iterations(self, test_client, service_override):
        """Out-of-range iterations should be a 400."""
        response = test_client.get(
            "/api/v1/modules/module-1/analysis",
            params={"iterations": 100_000},
        )

        assert response.status_code == 400

    def test_store_unavailable(self, test_client, service_override):
        """Exhausted store retries should surface as 502."""
        service_override.get_plots.side_effect = ObservationStoreError("Store unavailable", status_code=502)

        response = test_client.get("/api/v1/modules/module-1/analysis")

        assert response.status_code == 502

    def test_plot_summary_with_unit(self, test_client, service_override, sample_unit_ids):
        """A unit summary should be compared with the plot in percent."""
        first, second = sample_unit_ids[:2]
        service_override.get_tree_observations.return_value = [
            make_tree("a", "Acacia tortilis", unit_id=first),
            make_tree("b", "Acacia tortilis", unit_id=first),
            make_tree("c", "Ficus sycomorus", unit_id=first),
            make_tree("d", "Ficus sycomorus", unit_id=second),
        ]

        response = test_client.get("/api/v1/plots/plot-1/summary", params={"unit_id": first})

        assert response.status_code == 200
        data = response.json()
        assert data["unit_id"] == first
        assert data["unit_area_m2"] == pytest.approx(25.0)
        assert data["stand"]["stem_density_ha"] == pytest.approx(800.0)
        assert data["unit"]["stem_density_ha"] == pytest.approx(1200.0)
        assert data["comparison"]["stem_density_diff"] == pytest.approx(50.0)
        assert data["comparison"]["basal_area_diff"] == pytest.approx(50.0)
        assert data["comparison"]["qmd_diff"] == pytest.approx(0.0)

    def test_plot_summary_without_unit(self, test_client, service_override):
        """Without a unit the comparison block should be empty."""
        data = test_client.get("/api/v1/plots/plot-1/summary").json()

        assert data["unit"] is None
        assert data["comparison"] is None

    def test_plot_summary_unknown_unit(self, test_client, service_override):
        """A unit outside the plot layout should be a 400."""
        response = test_client.get("/api/v1/plots/plot-1/summary", params={"unit_id": "nope"})

        assert response.status_code == 400
        assert "nope" in response.json()["detail"]
