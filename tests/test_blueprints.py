"""
Unit tests for the blueprint registry and built-in blueprints.
"""
import pytest

from fieldplots.domain.blueprints import (
    BlueprintRegistry,
    STD_10X10_QUADRANTS,
    STD_20X20_QUADRANTS,
    default_registry,
)
from fieldplots.domain.exceptions import BlueprintNotFoundError
from fieldplots.services.domain.layout_generator import commit_layout
from fieldplots.utils.tree_traversal import iter_sampling_units


# ============================================================
# Registry Tests
# ============================================================

class TestBlueprintRegistry:
    """Tests for versioned blueprint lookup."""

    def test_default_registry_contents(self):
        """Built-in blueprints should all be registered."""
        assert len(default_registry) == 4
        for blueprint_id in ("std-10x10-4q", "std-20x20-4q", "cir-10m-full", "std-10x10-herb-subplots"):
            assert blueprint_id in default_registry

    def test_latest_version_without_version(self):
        """A lookup without version should return the highest version."""
        v2 = STD_10X10_QUADRANTS.model_copy(update={"version": 2, "name": "Revised"})
        registry = BlueprintRegistry([STD_10X10_QUADRANTS, v2])

        assert registry.get("std-10x10-4q").version == 2
        assert registry.get("std-10x10-4q", 1).name == STD_10X10_QUADRANTS.name
        assert registry.versions("std-10x10-4q") == [1, 2]

    def test_old_versions_stay_resolvable(self):
        """Registering a new version should not hide older ones."""
        v2 = STD_10X10_QUADRANTS.model_copy(update={"version": 2})
        registry = BlueprintRegistry([STD_10X10_QUADRANTS])
        registry.register(v2)

        assert registry.get("std-10x10-4q", 1) is STD_10X10_QUADRANTS

    def test_duplicate_registration_rejected(self):
        """The same (id, version) may only be registered once."""
        registry = BlueprintRegistry([STD_10X10_QUADRANTS])

        with pytest.raises(ValueError, match="already registered"):
            registry.register(STD_10X10_QUADRANTS)

    def test_unknown_id(self):
        """Unknown ids should raise BlueprintNotFoundError."""
        with pytest.raises(BlueprintNotFoundError, match="nope"):
            default_registry.get("nope")

    def test_unknown_version(self):
        """Unknown versions should raise and carry the requested version."""
        with pytest.raises(BlueprintNotFoundError) as exc_info:
            default_registry.get("std-10x10-4q", 99)

        assert exc_info.value.blueprint_id == "std-10x10-4q"
        assert exc_info.value.version == 99
        assert "v99" in str(exc_info.value)

    def test_get_all_sorted(self):
        """get_all should be ordered by id then version."""
        keys = [bp.key for bp in default_registry.get_all()]

        assert keys == sorted(keys)


# ============================================================
# Built-in Blueprint Tests
# ============================================================

class TestBuiltInBlueprints:
    """Tests for the shapes of the built-in blueprints."""

    @pytest.mark.parametrize("blueprint,cell", [
        (STD_10X10_QUADRANTS, 5.0),
        (STD_20X20_QUADRANTS, 10.0),
    ])
    def test_quadrant_sizes(self, blueprint, cell):
        """Quadrant plots should split into four equal squares."""
        units = list(iter_sampling_units(commit_layout(blueprint, "plot-1")))

        assert len(units) == 4
        assert all(u.shape.width == cell and u.shape.length == cell for u in units)

    def test_herb_subplots_are_only_units(self):
        """The herb-subplot plot should expose four 1x1 m units."""
        blueprint = default_registry.get("std-10x10-herb-subplots")
        units = list(iter_sampling_units(commit_layout(blueprint, "plot-1")))

        assert len(units) == 4
        assert {u.code for u in units} == {"H-NW", "H-NE", "H-SW", "H-SE"}
