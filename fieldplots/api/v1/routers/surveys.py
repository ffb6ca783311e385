"""
API router for store-backed plot and module endpoints.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Path, Query, Request

from fieldplots.api.dependencies import SurveyAnalysisServiceDep
from fieldplots.api.v1.models.responses import (
    LatLng,
    ModuleAnalysisResponse,
    PlotLayoutResponse,
)
from fieldplots.domain.models import PlotSummary
from fieldplots.middleware.rate_limiter import ANALYSIS_RATE_LIMIT, limiter
from fieldplots.utils.chart_scaling import sac_to_series
from fieldplots.utils.tree_traversal import iter_sampling_units


router = APIRouter(tags=["surveys"])

STORE_RESPONSES = {
    404: {"description": "Plot, module or blueprint version not found"},
    429: {"description": "Rate limit exceeded"},
    502: {"description": "Observation store unavailable"},
}


@router.get(
    "/plots/{plot_id}/layout",
    response_model=PlotLayoutResponse,
    summary="Get the committed layout of a plot",
    description="""
    Rebuild the layout of a stored plot from the blueprint id and version it
    was created with. Node ids match the `sampling_unit_id` of its observations.
    With `georeferenced=true`, every node footprint is projected to lat/lng
    using the plot origin and orientation.
    """,
    responses=STORE_RESPONSES,
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def get_plot_layout(
    request: Request,
    plot_id: Annotated[str, Path(description="Unique identifier for the plot")],
    service: SurveyAnalysisServiceDep,
    georeferenced: Annotated[bool, Query(description="Include lat/lng footprints")] = False,
) -> PlotLayoutResponse:
    """
    Get the committed layout of a plot.

    Args:
        request: Incoming request (used by the rate limiter)
        plot_id: Unique identifier for the plot
        service: Survey analysis service (injected dependency)
        georeferenced: Include lat/lng footprints

    Returns:
        PlotLayoutResponse
    """
    # Delegate to service layer (no business logic here)
    plot, root, footprints = await service.get_plot_layout(plot_id, georeferenced)

    return PlotLayoutResponse(
        blueprint_id=plot.blueprint_id,
        blueprint_version=plot.blueprint_version,
        plot_id=plot.id,
        stable=root.stable,
        sampling_unit_count=sum(1 for _ in iter_sampling_units(root)),
        root=root,
        footprints=None if footprints is None else {
            node_id: [LatLng(latitude=lat, longitude=lng) for lat, lng in ring]
            for node_id, ring in footprints.items()
        },
    )


@router.get(
    "/plots/{plot_id}/summary",
    response_model=PlotSummary,
    summary="Get stand structure and herb-layer diversity of a plot",
    description="""
    Stand structure over the surveyed area of a plot plus herb-layer diversity.
    With `unit_id`, the sampling unit is also summarized over its own area and
    compared with the plot as percentage differences.
    """,
    responses={
        400: {"description": "Sampling unit is not part of the plot layout"},
        **STORE_RESPONSES,
    },
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def get_plot_summary(
    request: Request,
    plot_id: Annotated[str, Path(description="Unique identifier for the plot")],
    service: SurveyAnalysisServiceDep,
    unit_id: Annotated[Optional[str], Query(description="Sampling unit to compare")] = None,
) -> PlotSummary:
    """
    Stand structure over the surveyed area of a plot.

    Args:
        request: Incoming request (used by the rate limiter)
        plot_id: Unique identifier for the plot
        service: Survey analysis service (injected dependency)
        unit_id: Sampling unit to compare against the plot

    Returns:
        PlotSummary
    """
    return await service.get_plot_summary(plot_id, unit_id=unit_id)


@router.get(
    "/modules/{module_id}/analysis",
    response_model=ModuleAnalysisResponse,
    summary="Analyse every plot of a survey module",
    description="""
    Fetch all plots and tree observations of a module and compute diversity,
    community metrics (IVI) and a species accumulation curve.
    """,
    responses={
        400: {"description": "SAC iterations out of range"},
        **STORE_RESPONSES,
    },
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def get_module_analysis(
    request: Request,
    module_id: Annotated[str, Path(description="Survey module identifier")],
    service: SurveyAnalysisServiceDep,
    iterations: Annotated[Optional[int], Query(description="SAC permutations")] = None,
    seed: Annotated[Optional[int], Query(description="SAC random seed")] = None,
) -> ModuleAnalysisResponse:
    """
    Full analysis report of a survey module.

    Args:
        request: Incoming request (used by the rate limiter)
        module_id: Survey module identifier
        service: Survey analysis service (injected dependency)
        iterations: SAC permutations
        seed: SAC random seed

    Returns:
        ModuleAnalysisResponse
    """
    report = await service.get_module_report(module_id, iterations=iterations, seed=seed)

    return ModuleAnalysisResponse(
        **report.model_dump(),
        sac_series=sac_to_series(report.sac),
    )
