"""
API router for stateless ecological analysis endpoints.

Every endpoint works on the observations supplied in the request body;
nothing is read from the record store.
"""
from fastapi import APIRouter, Request

from fieldplots.api.v1.models.requests import (
    CommunityRequest,
    DiversityRequest,
    SACRequest,
    StandStructureRequest,
)
from fieldplots.api.v1.models.responses import (
    CommunityResponse,
    DiversityResponse,
    SACResponse,
)
from fieldplots.domain.models import StandStructure
from fieldplots.middleware.rate_limiter import ANALYSIS_RATE_LIMIT, limiter
from fieldplots.services.domain.diversity_metrics import (
    calculate_community_metrics,
    calculate_shannon_index,
    calculate_simpson_index,
)
from fieldplots.services.domain.species_accumulation import calculate_ordered_sac, calculate_sac
from fieldplots.services.domain.stand_structure import calculate_stand_structure
from fieldplots.utils.chart_scaling import (
    calculate_multi_axis_scales,
    sac_to_series,
    sanitize_series,
)


router = APIRouter(
    prefix="/analysis",
    tags=["analysis"],
)

ANALYSIS_RESPONSES = {
    400: {"description": "Invalid statistical input (negative counts, iterations out of range)"},
    429: {"description": "Rate limit exceeded"},
}


@router.post(
    "/diversity",
    response_model=DiversityResponse,
    summary="Shannon and Simpson indices",
    responses=ANALYSIS_RESPONSES,
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def diversity(request: Request, body: DiversityRequest) -> DiversityResponse:
    """
    Compute Shannon-Wiener (natural log) and Simpson (1 - D) indices.

    Args:
        request: Incoming request (used by the rate limiter)
        body: Species counts

    Returns:
        DiversityResponse
    """
    return DiversityResponse(
        richness=sum(1 for c in body.counts if c > 0),
        individuals=int(sum(body.counts)),
        shannon=calculate_shannon_index(body.counts),
        simpson=calculate_simpson_index(body.counts),
    )


@router.post(
    "/community",
    response_model=CommunityResponse,
    summary="Community metrics and Importance Value Index",
    responses=ANALYSIS_RESPONSES,
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def community(request: Request, body: CommunityRequest) -> CommunityResponse:
    """
    Per-species abundance, basal area, frequency and IVI.

    Args:
        request: Incoming request (used by the rate limiter)
        body: Observations and plot count

    Returns:
        CommunityResponse
    """
    species = calculate_community_metrics(body.observations, body.plot_count)
    return CommunityResponse(
        plot_count=body.plot_count,
        species_count=len(species),
        species=species,
    )


@router.post(
    "/sac",
    response_model=SACResponse,
    summary="Species accumulation curve",
    description="""
    Randomized species accumulation curve with a render-ready line series.

    Each series point carries `sd`, `ci_lower` and `ci_upper` (y ± 1.96·sd)
    in its meta. Pass `seed` for a reproducible curve, or `ordered=true` to
    accumulate along `plot_ids` as given.
    """,
    responses=ANALYSIS_RESPONSES,
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def species_accumulation(request: Request, body: SACRequest) -> SACResponse:
    """
    Compute a species accumulation curve and its chart series.

    Args:
        request: Incoming request (used by the rate limiter)
        body: Observations, plot pool and estimator options

    Returns:
        SACResponse
    """
    if body.ordered:
        points = calculate_ordered_sac(body.observations, body.plot_ids)
    else:
        points = calculate_sac(
            body.observations,
            body.plot_ids,
            iterations=body.iterations,
            rng=body.seed,
        )

    series = sanitize_series([sac_to_series(points)])
    return SACResponse(
        points=points,
        series=series[0],
        scales=calculate_multi_axis_scales(series),
    )


@router.post(
    "/stand-structure",
    response_model=StandStructure,
    summary="Per-hectare stand structure",
    responses=ANALYSIS_RESPONSES,
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def stand_structure(request: Request, body: StandStructureRequest) -> StandStructure:
    """
    Stem density, basal area, biomass, carbon and size structure per hectare.

    Args:
        request: Incoming request (used by the rate limiter)
        body: Trees, surveyed area and allometry settings

    Returns:
        StandStructure
    """
    return calculate_stand_structure(body.trees, body.area_m2, body.settings)
