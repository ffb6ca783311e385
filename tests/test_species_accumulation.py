"""
Unit tests for species accumulation curves.

Tests cover:
- Curve shape (monotonic, ends at total richness)
- Seeded reproducibility
- Chunked evaluation
- Ordered accumulation
- Invalid iteration counts
"""
import numpy as np
import pytest

from fieldplots.config import settings
from fieldplots.domain.exceptions import InvalidStatisticalInputError
from fieldplots.services.domain.species_accumulation import (
    build_presence_matrix,
    calculate_ordered_sac,
    calculate_sac,
)
from tests.factories import make_tree

PLOTS = ["plot-1", "plot-2", "plot-3"]


@pytest.fixture
def four_plot_trees():
    """Four plots with one distinct species each."""
    return [
        make_tree(f"t{i}", species, f"p{i}")
        for i, species in enumerate(["Acacia", "Ficus", "Croton", "Olea"], start=1)
    ]


# ============================================================
# Presence Matrix Tests
# ============================================================

class TestPresenceMatrix:
    """Tests for the plot x species presence matrix."""

    def test_matrix_shape_and_values(self, sample_trees):
        """Rows follow plot order, columns are sorted species."""
        presence, species = build_presence_matrix(sample_trees, PLOTS)

        assert species == ["Acacia tortilis", "Croton megalocarpus", "Ficus sycomorus"]
        assert presence.shape == (3, 3)
        assert presence.tolist() == [
            [True, False, True],
            [True, True, False],
            [False, False, True],
        ]

    def test_unlisted_plots_ignored(self, sample_trees):
        """Observations from plots outside the pool should be dropped."""
        presence, species = build_presence_matrix(sample_trees, ["plot-2"])

        assert species == ["Acacia tortilis", "Croton megalocarpus"]
        assert presence.shape == (1, 2)


# ============================================================
# Randomized SAC Tests
# ============================================================

class TestRandomizedSAC:
    """Tests for the permutation-based estimator."""

    def test_one_point_per_plot(self, sample_trees):
        """The curve should have one point per sampled depth."""
        points = calculate_sac(sample_trees, PLOTS, iterations=20, rng=1)

        assert [p.plots_sampled for p in points] == [1, 2, 3]

    @pytest.mark.parametrize("seed", [0, 1, 2, 42, 1234])
    def test_monotonic_non_decreasing(self, sample_trees, seed):
        """Mean richness should never drop as plots are added."""
        points = calculate_sac(sample_trees, PLOTS, iterations=50, rng=seed)
        richness = [p.richness for p in points]

        assert richness == sorted(richness)

    def test_final_point_is_total_richness(self, sample_trees):
        """All plots sampled should always reach every species."""
        points = calculate_sac(sample_trees, PLOTS, iterations=30, rng=3)

        assert points[-1].richness == 3.0
        assert points[-1].sd == 0.0

    def test_union_of_four_plots(self, four_plot_trees):
        """Disjoint single-species plots should accumulate one species per plot."""
        points = calculate_sac(four_plot_trees, ["p1", "p2", "p3", "p4"], iterations=25, rng=9)

        assert [p.richness for p in points] == [1.0, 2.0, 3.0, 4.0]
        assert all(p.sd == 0.0 for p in points)

    def test_single_plot(self, sample_trees):
        """A single plot gives a single point with no spread."""
        points = calculate_sac(sample_trees, ["plot-1"], iterations=10, rng=0)

        assert len(points) == 1
        assert points[0].richness == 2.0
        assert points[0].sd == 0.0

    def test_single_plot_of_three_species(self):
        """One plot holding A, B and C should give a single point of richness 3."""
        trees = [make_tree(f"t{s}", s, "p1") for s in "ABC"]
        points = calculate_sac(trees, ["p1"], iterations=5, rng=1)

        assert [(p.plots_sampled, p.richness, p.sd) for p in points] == [(1, 3.0, 0.0)]

    def test_overlapping_plots(self):
        """Plots {A,B}, {A,B,C} and {C,D} should end at richness 4."""
        layout = {"p1": "AB", "p2": "ABC", "p3": "CD"}
        trees = [
            make_tree(f"{plot}-{s}", s, plot) for plot, species in layout.items() for s in species
        ]
        points = calculate_sac(trees, list(layout), iterations=40, rng=5)

        assert points[-1].richness == 4.0
        assert points[-1].sd == 0.0
        assert all(a.richness <= b.richness for a, b in zip(points, points[1:]))

    def test_empty_plot_list(self, sample_trees):
        """No plots should give an empty curve."""
        assert calculate_sac(sample_trees, [], iterations=10) == []

    def test_plot_without_trees(self, sample_trees):
        """Empty plots should count towards depth but add no species."""
        points = calculate_sac(sample_trees, PLOTS + ["plot-empty"], iterations=40, rng=5)

        assert len(points) == 4
        assert points[-1].richness == 3.0

    def test_no_observations(self):
        """Plots without any trees should give a flat zero curve."""
        points = calculate_sac([], PLOTS, iterations=5, rng=0)

        assert [p.richness for p in points] == [0.0, 0.0, 0.0]

    def test_seed_reproducible(self, sample_trees):
        """The same seed should give the same curve."""
        first = calculate_sac(sample_trees, PLOTS, iterations=50, rng=42)
        second = calculate_sac(sample_trees, PLOTS, iterations=50, rng=42)

        assert first == second

    def test_generator_accepted(self, sample_trees):
        """A numpy Generator should be usable as the random source."""
        points = calculate_sac(sample_trees, PLOTS, iterations=10, rng=np.random.default_rng(7))

        assert len(points) == 3

    def test_values_rounded(self, sample_trees):
        """Richness and SD should be rounded to two decimals."""
        points = calculate_sac(sample_trees, PLOTS, iterations=7, rng=11)

        for p in points:
            assert p.richness == round(p.richness, 2)
            assert p.sd == round(p.sd, 2)

    def test_default_iterations(self, sample_trees, monkeypatch):
        """Omitted iterations should fall back to the configured default."""
        monkeypatch.setattr(settings, "sac_default_iterations", 3)

        points = calculate_sac(sample_trees, PLOTS, rng=0)
        assert len(points) == 3

    def test_chunked_matches_unchunked(self, sample_trees, monkeypatch):
        """Chunked evaluation should not change a seeded result."""
        expected = calculate_sac(sample_trees, PLOTS, iterations=40, rng=8)

        monkeypatch.setattr(settings, "sac_chunk_threshold", 10)
        chunked = calculate_sac(sample_trees, PLOTS, iterations=40, rng=8)

        assert chunked == expected

    @pytest.mark.parametrize("iterations", [0, -5])
    def test_non_positive_iterations_rejected(self, sample_trees, iterations):
        """Iterations must be positive."""
        with pytest.raises(InvalidStatisticalInputError):
            calculate_sac(sample_trees, PLOTS, iterations=iterations)

    def test_iterations_above_cap_rejected(self, sample_trees):
        """Iterations above the configured cap should be refused."""
        with pytest.raises(InvalidStatisticalInputError, match="maximum"):
            calculate_sac(sample_trees, PLOTS, iterations=settings.sac_max_iterations + 1)


# ============================================================
# Ordered SAC Tests
# ============================================================

class TestOrderedSAC:
    """Tests for accumulation along a fixed plot order."""

    def test_follows_given_order(self, sample_trees):
        """Richness should accumulate in the order given."""
        points = calculate_ordered_sac(sample_trees, ["plot-3", "plot-1", "plot-2"])

        assert [p.richness for p in points] == [1.0, 2.0, 3.0]
        assert all(p.sd == 0.0 for p in points)

    def test_empty_sequence(self, sample_trees):
        """No plots should give an empty curve."""
        assert calculate_ordered_sac(sample_trees, []) == []
