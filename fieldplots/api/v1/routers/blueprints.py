"""
API router for blueprint catalog and layout generation endpoints.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Path, Query, Request

from fieldplots.api.dependencies import BlueprintRegistryDep
from fieldplots.api.v1.models.requests import LayoutRequest
from fieldplots.api.v1.models.responses import (
    BlueprintListResponse,
    BlueprintResponse,
    BlueprintSummary,
    LayoutResponse,
)
from fieldplots.domain.exceptions import BlueprintNotFoundError
from fieldplots.middleware.rate_limiter import ANALYSIS_RATE_LIMIT, limiter
from fieldplots.services.domain.layout_generator import generate_layout
from fieldplots.utils.tree_traversal import iter_sampling_units


router = APIRouter(
    prefix="/blueprints",
    tags=["blueprints"],
)

BlueprintId = Annotated[str, Path(description="Blueprint identifier, e.g. std-10x10-4q")]
BlueprintVersion = Annotated[
    Optional[int],
    Query(description="Blueprint version; latest when omitted"),
]


@router.get(
    "",
    response_model=BlueprintListResponse,
    summary="List registered blueprints",
)
async def list_blueprints(registry: BlueprintRegistryDep) -> BlueprintListResponse:
    """
    List every registered blueprint with its available versions.

    Args:
        registry: Blueprint registry (injected dependency)

    Returns:
        BlueprintListResponse
    """
    latest = {}
    for blueprint in registry.get_all():
        latest[blueprint.id] = blueprint

    return BlueprintListResponse(
        blueprints=[
            BlueprintSummary(
                id=blueprint.id,
                name=blueprint.name,
                latest_version=blueprint.version,
                versions=registry.versions(blueprint.id),
            )
            for blueprint in latest.values()
        ]
    )


@router.get(
    "/{blueprint_id}",
    response_model=BlueprintResponse,
    summary="Get a blueprint",
    responses={
        404: {"description": "Blueprint or version not registered"},
    }
)
async def get_blueprint(
    blueprint_id: BlueprintId,
    registry: BlueprintRegistryDep,
    version: BlueprintVersion = None,
) -> BlueprintResponse:
    """
    Get one blueprint version.

    Args:
        blueprint_id: Blueprint identifier
        registry: Blueprint registry (injected dependency)
        version: Optional version

    Returns:
        BlueprintResponse

    Raises:
        HTTPException: If the blueprint is not registered
    """
    try:
        blueprint = registry.get(blueprint_id, version)
    except BlueprintNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return BlueprintResponse(blueprint=blueprint, versions=registry.versions(blueprint_id))


@router.post(
    "/{blueprint_id}/layout",
    response_model=LayoutResponse,
    summary="Generate a plot layout",
    description="""
    Realize a blueprint into concrete geometry.

    With a `plot_id` the layout is committed: node ids are derived from the
    plot id, blueprint id/version and node path, so the same request always
    returns the same ids and observations may reference them. Without a
    `plot_id` a preview is returned whose ids are random and must not be stored.
    """,
    responses={
        400: {"description": "Malformed blueprint or overrides"},
        404: {"description": "Blueprint or version not registered"},
        429: {"description": "Rate limit exceeded"},
    }
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def create_layout(
    request: Request,
    blueprint_id: BlueprintId,
    body: LayoutRequest,
    registry: BlueprintRegistryDep,
    version: BlueprintVersion = None,
) -> LayoutResponse:
    """
    Generate a preview or committed layout.

    Args:
        request: Incoming request (used by the rate limiter)
        blueprint_id: Blueprint identifier
        body: Plot id and overrides
        registry: Blueprint registry (injected dependency)
        version: Optional version

    Returns:
        LayoutResponse
    """
    try:
        blueprint = registry.get(blueprint_id, version)
    except BlueprintNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    root = generate_layout(blueprint, body.overrides, plot_id=body.plot_id)

    return LayoutResponse(
        blueprint_id=blueprint.id,
        blueprint_version=blueprint.version,
        plot_id=body.plot_id,
        stable=root.stable,
        sampling_unit_count=sum(1 for _ in iter_sampling_units(root)),
        root=root,
    )
