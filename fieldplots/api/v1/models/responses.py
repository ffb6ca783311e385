"""
API response models using Pydantic.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from fieldplots.domain.models import DiversitySummary, SACPoint, SpeciesStats
from fieldplots.domain.plot_layout import PlotBlueprint, PlotNodeInstance
from fieldplots.utils.chart_scaling import ChartDataSeries, MultiAxisScales


class LatLng(BaseModel):
    """Single georeferenced vertex."""
    latitude: float = Field(
        description="Latitude coordinate in degrees",
        examples=[-1.2921]
    )
    longitude: float = Field(
        description="Longitude coordinate in degrees",
        examples=[36.8219]
    )


class BlueprintSummary(BaseModel):
    """Catalog entry for one blueprint."""
    id: str
    name: str
    latest_version: int
    versions: List[int]


class BlueprintListResponse(BaseModel):
    """Response model for the blueprint catalog."""
    blueprints: List[BlueprintSummary]


class BlueprintResponse(BaseModel):
    """Response model for a single blueprint version."""
    blueprint: PlotBlueprint
    versions: List[int] = Field(
        description="All registered versions of this blueprint"
    )


class LayoutResponse(BaseModel):
    """Response model for a generated layout."""
    blueprint_id: str
    blueprint_version: int
    plot_id: Optional[str] = None
    stable: bool = Field(
        description="True when node ids are deterministic and safe to persist"
    )
    sampling_unit_count: int
    root: PlotNodeInstance


class PlotLayoutResponse(LayoutResponse):
    """Response model for the committed layout of a stored plot."""
    footprints: Optional[Dict[str, List[LatLng]]] = Field(
        default=None,
        description="Node footprints in lat/lng, keyed by node id"
    )


class DiversityResponse(DiversitySummary):
    """Response model for diversity indices."""

    class Config:
        json_schema_extra = {
            "example": {
                "richness": 4,
                "individuals": 40,
                "shannon": 1.3863,
                "simpson": 0.75,
            }
        }


class CommunityResponse(BaseModel):
    """Response model for community metrics."""
    plot_count: int
    species_count: int
    species: List[SpeciesStats] = Field(
        description="Per-species metrics sorted by IVI"
    )


class SACResponse(BaseModel):
    """Response model for species accumulation curves."""
    points: List[SACPoint]
    series: ChartDataSeries = Field(
        description="Render-ready line series with 95% bounds in point meta"
    )
    scales: MultiAxisScales


class ModuleAnalysisResponse(BaseModel):
    """Response model for the full analysis of a survey module."""
    module_id: str
    plot_count: int
    tree_count: int
    diversity: DiversitySummary
    community: List[SpeciesStats]
    sac: List[SACPoint]
    sac_series: ChartDataSeries
