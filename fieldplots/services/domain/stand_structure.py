"""
Domain service: Stand structure and biomass summaries.

Per-hectare stand metrics for a plot or a single sampling unit: stem
density, basal area, above-ground biomass, carbon, quadratic mean diameter,
Lorey's height, size inequality (Gini) and diversity.
"""
import logging
import math
from typing import Optional, Sequence

import numpy as np

from fieldplots.domain.models import (
    AnalysisSettings,
    BiomassModel,
    GiniBand,
    ProgressStatus,
    SamplingUnitProgress,
    StandStructure,
    TreeObservation,
    UnitComparison,
)
from fieldplots.domain.plot_layout import PlotNodeInstance
from fieldplots.services.domain.diversity_metrics import (
    calculate_basal_area,
    calculate_shannon_index,
    calculate_simpson_index,
    species_counts,
)
from fieldplots.utils.plot_geometry import shape_area
from fieldplots.utils.tree_traversal import find_node

logger = logging.getLogger(__name__)

SQUARE_METERS_PER_HECTARE = 10_000
MIN_TREES_FOR_DIVERSITY = 10
MIN_STEMS_FOR_GINI = 5

# Upper bounds of the UNIFORM and MODERATE bands; COMPLEX covers the rest
GINI_UNIFORM_MAX = 0.2
GINI_MODERATE_MAX = 0.5


def gbh_to_dbh(gbh_cm: float) -> float:
    """Diameter at breast height (cm) from girth (cm)."""
    return gbh_cm / math.pi


def calculate_qmd(gbh_values: Sequence[float]) -> float:
    """
    Quadratic mean diameter in cm: the diameter of the tree of mean basal area.
    """
    if len(gbh_values) == 0:
        return 0.0
    dbh = np.asarray(gbh_values, dtype=float) / math.pi
    return float(np.sqrt(np.mean(dbh ** 2)))


def calculate_gini(gbh_values: Sequence[float]) -> Optional[float]:
    """
    Gini coefficient of stem sizes.

    0 for a plantation of identical stems, approaching 1 for a stand dominated
    by a few large trees. None below MIN_STEMS_FOR_GINI stems, where the
    value is mostly noise.
    """
    if len(gbh_values) < MIN_STEMS_FOR_GINI:
        return None
    sorted_values = np.sort(np.asarray(gbh_values, dtype=float))
    n = len(sorted_values)
    total = sorted_values.sum()
    if total == 0:
        return 0.0
    ranks = np.arange(1, n + 1)
    return float(2 * np.sum(ranks * sorted_values) / (n * total) - (n + 1) / n)


def classify_gini(gini: Optional[float]) -> Optional[GiniBand]:
    """
    Structural complexity band of a Gini coefficient.

    Args:
        gini: Gini coefficient of stem sizes, or None when not reported

    Returns:
        UNIFORM below 0.2, MODERATE below 0.5, COMPLEX otherwise
    """
    if gini is None:
        return None
    if gini < GINI_UNIFORM_MAX:
        return GiniBand.UNIFORM
    if gini < GINI_MODERATE_MAX:
        return GiniBand.MODERATE
    return GiniBand.COMPLEX


def calculate_loreys_height(trees: Sequence[TreeObservation]) -> float:
    """Basal-area-weighted mean height of trees with a recorded height."""
    total_ba = 0.0
    weighted_height = 0.0
    for tree in trees:
        if not tree.height:
            continue
        ba = calculate_basal_area(tree.effective_gbh)
        total_ba += ba
        weighted_height += ba * tree.height
    return weighted_height / total_ba if total_ba > 0 else 0.0


def calculate_agb(
    gbh_cm: float,
    height_m: Optional[float],
    settings: AnalysisSettings,
) -> tuple[float, bool]:
    """
    Above-ground biomass of one tree.

    Args:
        gbh_cm: Girth at breast height in cm
        height_m: Measured height in m, if any
        settings: Allometry settings

    Returns:
        Tuple of (biomass in kg, whether the value relies on an estimated height
        or falls outside the model's range)
    """
    if not gbh_cm:
        return (0.0, False)

    d = gbh_to_dbh(gbh_cm)
    wd = settings.wood_density

    if settings.biomass_model == BiomassModel.CHAVE_2014_HEIGHT:
        # AGB = 0.0673 * (WD * D² * H)^0.976
        if height_m and height_m > 0:
            return (0.0673 * (wd * d ** 2 * height_m) ** 0.976, False)
        estimated_height = min(45.0, 5 + 0.5 * d)
        return (0.0673 * (wd * d ** 2 * estimated_height) ** 0.976, True)

    if settings.biomass_model == BiomassModel.BROWN_1997_MOIST:
        # Height independent: AGB = 42.69 - 12.8 D + 1.242 D²
        if d < 5:
            return (0.0, True)
        return (42.69 - 12.8 * d + 1.242 * d ** 2, False)

    if settings.biomass_model == BiomassModel.CHAVE_2005_DRY:
        # AGB = 0.112 * (WD * D² * H)^0.916
        height = height_m or (2 + 0.3 * d)
        return (0.112 * (wd * d ** 2 * height) ** 0.916, not height_m)

    return (0.0, True)


def calculate_stand_structure(
    trees: Sequence[TreeObservation],
    area_m2: float,
    settings: Optional[AnalysisSettings] = None,
) -> StandStructure:
    """
    Summarize a stand on a per-hectare basis.

    Trees below ``settings.min_gbh_for_carbon`` are counted as regeneration
    and excluded from basal area, biomass and diversity.

    Args:
        trees: Tree observations inside the surveyed area
        area_m2: Surveyed area in m²
        settings: Allometry settings (defaults when omitted)

    Returns:
        StandStructure; all zeros for no trees or no area
    """
    settings = settings or AnalysisSettings()

    if not trees or area_m2 <= 0:
        return StandStructure(
            stem_density_ha=0.0,
            basal_area_ha=0.0,
            agb_ha=0.0,
            carbon_ha=0.0,
            qmd=0.0,
            loreys_height=0.0,
            gini_coefficient=None,
            regeneration_count=0,
            shannon=None,
            simpson=None,
            richness=0,
            is_estimate=False,
        )

    total_ba = 0.0
    total_agb = 0.0
    estimated = 0
    regeneration = 0
    gbh_values = []
    mature = []

    for tree in trees:
        gbh = tree.effective_gbh
        if gbh < settings.min_gbh_for_carbon:
            regeneration += 1
            continue

        agb, is_estimate = calculate_agb(gbh, tree.height, settings)
        total_ba += calculate_basal_area(gbh)
        total_agb += agb
        gbh_values.append(gbh)
        mature.append(tree)
        if is_estimate:
            estimated += 1

    gini = calculate_gini(gbh_values)
    counts = list(species_counts(mature).values())
    enough_for_diversity = len(trees) >= MIN_TREES_FOR_DIVERSITY
    ha_factor = SQUARE_METERS_PER_HECTARE / area_m2

    return StandStructure(
        stem_density_ha=len(trees) * ha_factor,
        basal_area_ha=total_ba * ha_factor,
        agb_ha=(total_agb / 1000) * ha_factor,
        carbon_ha=(total_agb / 1000) * settings.carbon_fraction * ha_factor,
        qmd=calculate_qmd(gbh_values),
        loreys_height=calculate_loreys_height(trees),
        gini_coefficient=gini,
        gini_band=classify_gini(gini),
        regeneration_count=regeneration,
        shannon=calculate_shannon_index(counts) if enough_for_diversity else None,
        simpson=calculate_simpson_index(counts) if enough_for_diversity else None,
        richness=len(counts),
        is_estimate=estimated / max(1, len(gbh_values)) > 0.5,
    )


def surveyed_area(
    root: PlotNodeInstance,
    progress: Sequence[SamplingUnitProgress],
    trees: Sequence[TreeObservation],
) -> float:
    """
    Area actually surveyed in a plot.

    Counts every unit marked DONE and every unit holding at least one
    observation, so empty-but-finished units still contribute effort.
    Falls back to the whole plot area when no unit qualifies.

    Args:
        root: Committed layout of the plot
        progress: Progress records of the plot
        trees: Tree observations of the plot

    Returns:
        Area in m²
    """
    unit_ids = {p.sampling_unit_id for p in progress if p.status == ProgressStatus.DONE}
    unit_ids.update(t.sampling_unit_id for t in trees if t.sampling_unit_id)

    area = 0.0
    for unit_id in unit_ids:
        node = find_node(root, unit_id)
        if node is None:
            logger.warning(f"Sampling unit {unit_id} is not part of layout {root.id}")
            continue
        area += shape_area(node.shape)

    if area > 0:
        return area
    return shape_area(root.shape)


def unit_area(root: PlotNodeInstance, unit_id: str) -> float:
    """
    Area of one sampling unit of a layout in m².

    Raises:
        ValueError: If the unit is not part of the layout
    """
    node = find_node(root, unit_id)
    if node is None:
        raise ValueError(f"Sampling unit {unit_id} is not part of layout {root.id}")
    return shape_area(node.shape)


def _percent_difference(unit_value: float, plot_value: float) -> float:
    if plot_value == 0:
        return 0.0
    return (unit_value - plot_value) / plot_value * 100


def compare_stands(unit: StandStructure, plot: StandStructure) -> UnitComparison:
    """
    Compare a sampling unit against its whole plot.

    Each value is the unit's percentage difference from the plot; a plot
    value of zero gives 0 rather than an infinite difference.

    Args:
        unit: Stand structure of the sampling unit over its own area
        plot: Stand structure of the plot over its surveyed area

    Returns:
        UnitComparison
    """
    return UnitComparison(
        basal_area_diff=_percent_difference(unit.basal_area_ha, plot.basal_area_ha),
        carbon_diff=_percent_difference(unit.carbon_ha, plot.carbon_ha),
        qmd_diff=_percent_difference(unit.qmd, plot.qmd),
        stem_density_diff=_percent_difference(unit.stem_density_ha, plot.stem_density_ha),
    )
