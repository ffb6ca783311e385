"""
Domain service: Species accumulation curves.

The randomized estimator shuffles the plot order many times and averages
the cumulative species richness reached after 1..N plots. Randomness comes
from an injected numpy Generator so a fixed seed pins the output exactly.
"""
import logging
from typing import Optional, Sequence, Union

import numpy as np

from fieldplots.config import settings
from fieldplots.domain.exceptions import InvalidStatisticalInputError
from fieldplots.domain.models import SACPoint, TreeObservation

logger = logging.getLogger(__name__)

RandomSource = Union[np.random.Generator, int, None]


def build_presence_matrix(
    observations: Sequence[TreeObservation],
    plot_ids: Sequence[str],
) -> tuple[np.ndarray, list[str]]:
    """
    Species presence per plot as a boolean matrix.

    Args:
        observations: Tree observations; unknowns and plots not listed are ignored
        plot_ids: Plots to include, one matrix row each (in the given order)

    Returns:
        Tuple of:
            - Array of shape (len(plot_ids), n_species), True where present
            - Species names, one per column
    """
    species_by_plot: dict[str, set[str]] = {plot_id: set() for plot_id in plot_ids}
    for tree in observations:
        if tree.is_unknown or tree.plot_id not in species_by_plot:
            continue
        species_by_plot[tree.plot_id].add(tree.species_name)

    species = sorted(set().union(*species_by_plot.values())) if species_by_plot else []
    column = {name: j for j, name in enumerate(species)}

    presence = np.zeros((len(plot_ids), len(species)), dtype=bool)
    for i, plot_id in enumerate(plot_ids):
        for name in species_by_plot[plot_id]:
            presence[i, column[name]] = True

    return presence, species


def _validate_iterations(iterations: int) -> None:
    if iterations <= 0:
        raise InvalidStatisticalInputError(
            f"iterations must be a positive integer, got {iterations}"
        )
    if iterations > settings.sac_max_iterations:
        raise InvalidStatisticalInputError(
            f"iterations={iterations} exceeds the configured maximum "
            f"of {settings.sac_max_iterations}"
        )


def _summarize(richness: np.ndarray) -> list[SACPoint]:
    """Collapse an (iterations, depth) richness array into curve points."""
    means = richness.mean(axis=0)
    sds = richness.std(axis=0)  # population SD (ddof=0)
    return [
        SACPoint(
            plots_sampled=depth + 1,
            richness=round(float(means[depth]), 2),
            sd=round(float(sds[depth]), 2),
        )
        for depth in range(richness.shape[1])
    ]


def calculate_sac(
    observations: Sequence[TreeObservation],
    plot_ids: Sequence[str],
    iterations: Optional[int] = None,
    rng: RandomSource = None,
) -> list[SACPoint]:
    """
    Randomized species accumulation curve.

    Args:
        observations: Tree observations across the analysed plots
        plot_ids: Plots forming the sampling pool
        iterations: Number of random permutations (default from settings, 50)
        rng: numpy Generator or seed; None draws a seed from system entropy

    Returns:
        One SACPoint per depth 1..len(plot_ids); empty list when no plots

    Raises:
        InvalidStatisticalInputError: If iterations is not positive or exceeds the cap
    """
    if iterations is None:
        iterations = settings.sac_default_iterations
    _validate_iterations(iterations)

    n_plots = len(plot_ids)
    if n_plots == 0:
        return []

    presence, species = build_presence_matrix(observations, plot_ids)
    generator = np.random.default_rng(rng)

    workload = n_plots * iterations
    if workload > settings.sac_chunk_threshold:
        chunk_size = max(1, settings.sac_chunk_threshold // n_plots)
        logger.warning(
            f"Large SAC workload ({n_plots} plots x {iterations} iterations); "
            f"evaluating permutations in chunks of {chunk_size}"
        )
    else:
        chunk_size = iterations

    richness = np.empty((iterations, n_plots), dtype=float)
    for start in range(0, iterations, chunk_size):
        stop = min(start + chunk_size, iterations)
        orders = np.stack([generator.permutation(n_plots) for _ in range(stop - start)])
        # (chunk, depth, species): running union of species along the permuted order
        accumulated = np.logical_or.accumulate(presence[orders], axis=1)
        richness[start:stop] = accumulated.sum(axis=2)

    points = _summarize(richness)
    logger.info(
        f"SAC over {n_plots} plots x {iterations} iterations: "
        f"{len(species)} species, final richness {points[-1].richness}"
    )
    return points


def calculate_ordered_sac(
    observations: Sequence[TreeObservation],
    plot_sequence: Sequence[str],
) -> list[SACPoint]:
    """
    Species accumulation along a fixed plot order (e.g. along a transect).

    Args:
        observations: Tree observations
        plot_sequence: Plots in sampling order

    Returns:
        One SACPoint per depth, with sd = 0
    """
    if not plot_sequence:
        return []

    presence, _ = build_presence_matrix(observations, plot_sequence)
    richness = np.logical_or.accumulate(presence, axis=0).sum(axis=1)
    return _summarize(richness[np.newaxis, :].astype(float))
