"""
Application service: Orchestration layer for survey analysis operations.
"""
import logging
from typing import Dict, List, Optional, Tuple

from fieldplots.domain.blueprints import BlueprintRegistry
from fieldplots.domain.models import AnalysisSettings, ModuleReport, Plot, PlotSummary
from fieldplots.domain.plot_layout import PlotNodeInstance
from fieldplots.infrastructure.observation_store_client import ObservationStoreClient
from fieldplots.services.domain.diversity_metrics import (
    calculate_community_metrics,
    summarize_diversity,
)
from fieldplots.services.domain.layout_generator import commit_layout
from fieldplots.services.domain.species_accumulation import calculate_sac
from fieldplots.services.domain.stand_structure import (
    calculate_stand_structure,
    compare_stands,
    surveyed_area,
    unit_area,
)
from fieldplots.utils.geo_projection import georeference_layout

logger = logging.getLogger(__name__)

Footprints = Dict[str, List[Tuple[float, float]]]


class SurveyAnalysisService:
    """
    Application service for plot layout and analysis operations.

    Orchestrates data fetching and domain computations.
    No business logic here, only coordination between the record store,
    the blueprint registry and the domain services.
    """

    def __init__(
        self,
        store_client: ObservationStoreClient,
        registry: BlueprintRegistry,
    ):
        """
        Initialize the service with dependencies.

        Args:
            store_client: Observation store client for data fetching
            registry: Blueprint registry used to resolve plot layouts
        """
        self.store_client = store_client
        self.registry = registry

    def layout_for(self, plot: Plot) -> PlotNodeInstance:
        """
        Committed layout of a stored plot.

        The plot's recorded blueprint version is always used, so stored
        sampling unit ids keep resolving after newer versions are registered.
        """
        blueprint = self.registry.get(plot.blueprint_id, plot.blueprint_version)
        return commit_layout(blueprint, plot.id)

    async def get_plot_layout(
        self,
        plot_id: str,
        georeferenced: bool = False,
    ) -> Tuple[Plot, PlotNodeInstance, Optional[Footprints]]:
        """
        Get the committed layout of a plot.

        Args:
            plot_id: Plot identifier
            georeferenced: Also project every node footprint to lat/lng

        Returns:
            Tuple of (plot, layout root, footprints or None when not requested
            or the plot has no coordinates)

        Raises:
            ObservationStoreError: If the plot cannot be fetched
            BlueprintNotFoundError: If the plot's blueprint version is unknown
        """
        plot = await self.store_client.get_plot(plot_id)
        layout = self.layout_for(plot)

        footprints = None
        if georeferenced:
            if plot.coordinates is None:
                logger.warning(f"Plot {plot_id} has no coordinates; skipping georeferencing")
            else:
                footprints = georeference_layout(
                    layout,
                    plot.coordinates.lat,
                    plot.coordinates.lng,
                    plot.orientation,
                )

        return plot, layout, footprints

    async def get_plot_summary(
        self,
        plot_id: str,
        settings: Optional[AnalysisSettings] = None,
        unit_id: Optional[str] = None,
    ) -> PlotSummary:
        """
        Stand structure and herb-layer diversity of one plot.

        This method orchestrates:
        1. Fetching the plot and building its layout
        2. Fetching trees, vegetation and sampling unit progress
        3. Deriving the surveyed area from completed units
        4. Running the stand structure and diversity computations
        5. Optionally comparing one sampling unit against the plot

        Args:
            plot_id: Plot identifier
            settings: Allometry settings
            unit_id: Sampling unit to summarize over its own area

        Returns:
            PlotSummary

        Raises:
            ValueError: If unit_id is not part of the plot layout
        """
        plot = await self.store_client.get_plot(plot_id)
        layout = self.layout_for(plot)

        trees = await self.store_client.get_tree_observations(plot_id=plot_id)
        vegetation = await self.store_client.get_vegetation_observations(plot_id)
        progress = await self.store_client.get_sampling_unit_progress(plot_id)

        area = surveyed_area(layout, progress, trees)
        logger.info(
            f"Plot {plot_id}: {len(trees)} trees, {len(vegetation)} vegetation records, "
            f"surveyed area {area:.1f}m²"
        )

        stand = calculate_stand_structure(trees, area, settings)
        summary = PlotSummary(
            plot_id=plot_id,
            surveyed_area_m2=area,
            stand=stand,
            herb_layer=summarize_diversity(vegetation),
        )
        if unit_id is None:
            return summary

        unit_area_m2 = unit_area(layout, unit_id)
        unit_trees = [t for t in trees if t.sampling_unit_id == unit_id]
        unit_stand = calculate_stand_structure(unit_trees, unit_area_m2, settings)
        logger.debug(f"Plot {plot_id}: unit {unit_id} holds {len(unit_trees)} trees")

        return summary.model_copy(update={
            "unit_id": unit_id,
            "unit_area_m2": unit_area_m2,
            "unit": unit_stand,
            "comparison": compare_stands(unit_stand, stand),
        })

    async def get_module_report(
        self,
        module_id: str,
        iterations: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> ModuleReport:
        """
        Diversity, community metrics and species accumulation for a module.

        Args:
            module_id: Survey module identifier
            iterations: SAC permutations (settings default when omitted)
            seed: SAC random seed for reproducible curves

        Returns:
            ModuleReport

        Raises:
            ObservationStoreError: If data fetching fails
            InvalidStatisticalInputError: If iterations is out of range
        """
        plots = await self.store_client.get_plots(module_id)
        trees = await self.store_client.get_tree_observations(module_id=module_id)
        plot_ids = [plot.id for plot in plots]

        logger.info(f"Module {module_id}: analysing {len(plot_ids)} plots, {len(trees)} trees")

        return ModuleReport(
            module_id=module_id,
            plot_count=len(plot_ids),
            tree_count=len(trees),
            diversity=summarize_diversity(trees),
            community=calculate_community_metrics(trees, len(plot_ids)),
            sac=calculate_sac(trees, plot_ids, iterations=iterations, rng=seed),
        )
