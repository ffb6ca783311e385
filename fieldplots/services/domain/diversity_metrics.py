"""
Domain service: Diversity indices and community metrics.

Pure functions over flat observation lists:
- Shannon-Wiener index (H')
- Simpson's diversity (1 - D)
- Basal area from girth at breast height
- Per-species abundance, basal area, frequency and Importance Value Index

Degenerate inputs (no trees, no plots) yield zeros; invalid inputs
(negative counts or plot totals) raise InvalidStatisticalInputError.
"""
import logging
import math
from collections import Counter
from typing import Sequence, Union

import numpy as np
from scipy.stats import entropy

from fieldplots.domain.exceptions import InvalidStatisticalInputError
from fieldplots.domain.models import (
    DiversitySummary,
    SpeciesStats,
    TreeObservation,
    VegetationObservation,
)

logger = logging.getLogger(__name__)

Observation = Union[TreeObservation, VegetationObservation]


def _as_count_array(counts: Sequence[float]) -> np.ndarray:
    values = np.asarray(counts, dtype=float)
    if values.size and np.any(values < 0):
        raise InvalidStatisticalInputError(
            f"Species counts must be non-negative, got {values[values < 0].tolist()}"
        )
    return values


def calculate_shannon_index(counts: Sequence[float]) -> float:
    """
    Shannon-Wiener index H' = -sum(p_i * ln(p_i)).

    Args:
        counts: Individuals per species

    Returns:
        H' in nats; 0.0 for empty input or zero total
    """
    values = _as_count_array(counts)
    if values.size == 0 or values.sum() == 0:
        return 0.0
    # entropy() normalizes the counts and treats 0 * ln(0) as 0
    return float(entropy(values))


def calculate_simpson_index(counts: Sequence[float]) -> float:
    """
    Simpson's diversity 1 - D, where D = sum(p_i ** 2).

    The probability that two individuals drawn at random belong to
    different species.

    Args:
        counts: Individuals per species

    Returns:
        1 - D; 0.0 for empty input or zero total
    """
    values = _as_count_array(counts)
    total = values.sum()
    if values.size == 0 or total == 0:
        return 0.0
    proportions = values / total
    return float(1.0 - np.sum(proportions ** 2))


def calculate_basal_area(gbh_cm: float) -> float:
    """
    Basal area in m² of a stem with the given girth.

    BA = GBH² / (4π), with GBH converted from cm to m.

    Args:
        gbh_cm: Girth at breast height in cm

    Returns:
        Cross-sectional area in m²; 0.0 for missing or non-positive girth
    """
    if not gbh_cm or gbh_cm <= 0:
        return 0.0
    return gbh_cm ** 2 / (4 * math.pi) / 10_000


def species_counts(observations: Sequence[Observation]) -> dict[str, int]:
    """
    Count identified individuals per species.

    Vegetation records contribute their ``abundance_count`` (1 when not
    recorded); tree records contribute one individual each. Unknowns are
    skipped.

    Args:
        observations: Tree and/or vegetation observations

    Returns:
        Mapping of species name to count, in first-seen order
    """
    counts: Counter = Counter()
    for obs in observations:
        if obs.is_unknown:
            continue
        if isinstance(obs, VegetationObservation) and obs.abundance_count is not None:
            counts[obs.species_name] += obs.abundance_count
        else:
            counts[obs.species_name] += 1
    return dict(counts)


def _percent(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def calculate_community_metrics(
    observations: Sequence[TreeObservation],
    plot_count: int,
) -> list[SpeciesStats]:
    """
    Per-species community metrics and Importance Value Index.

    IVI = relative abundance + relative basal area + relative frequency,
    each expressed as a percentage of the total across all species.

    Args:
        observations: Tree observations across the analysed plots
        plot_count: Number of plots sampled (including plots without trees)

    Returns:
        SpeciesStats sorted by IVI desc, then abundance desc, then name

    Raises:
        InvalidStatisticalInputError: If plot_count is negative
    """
    if plot_count < 0:
        raise InvalidStatisticalInputError(f"plot_count must be >= 0, got {plot_count}")

    abundance: Counter = Counter()
    basal_area: dict[str, float] = {}
    plots: dict[str, set[str]] = {}

    for tree in observations:
        if tree.is_unknown:
            continue
        name = tree.species_name
        abundance[name] += 1
        basal_area[name] = basal_area.get(name, 0.0) + calculate_basal_area(tree.effective_gbh)
        plots.setdefault(name, set()).add(tree.plot_id)

    if not abundance:
        logger.debug("No identified trees; community metrics are empty")
        return []

    frequency = {
        name: _percent(len(plot_ids), plot_count)
        for name, plot_ids in plots.items()
    }

    total_abundance = sum(abundance.values())
    total_basal_area = sum(basal_area.values())
    total_frequency = sum(frequency.values())

    stats = []
    for name, count in abundance.items():
        rel_abundance = _percent(count, total_abundance)
        rel_basal_area = _percent(basal_area[name], total_basal_area)
        rel_frequency = _percent(frequency[name], total_frequency)
        stats.append(SpeciesStats(
            species_name=name,
            abundance=count,
            basal_area=basal_area[name],
            frequency=frequency[name],
            relative_abundance=rel_abundance,
            relative_basal_area=rel_basal_area,
            relative_frequency=rel_frequency,
            ivi=rel_abundance + rel_basal_area + rel_frequency,
        ))

    stats.sort(key=lambda s: (-s.ivi, -s.abundance, s.species_name))

    logger.info(
        f"Community metrics: {len(stats)} species, {total_abundance} trees, "
        f"{plot_count} plots, total basal area {total_basal_area:.4f}m²"
    )
    return stats


def summarize_diversity(observations: Sequence[Observation]) -> DiversitySummary:
    """Richness, individual count and both indices of an observation set."""
    counts = list(species_counts(observations).values())
    return DiversitySummary(
        richness=len(counts),
        individuals=sum(counts),
        shannon=calculate_shannon_index(counts),
        simpson=calculate_simpson_index(counts),
    )
