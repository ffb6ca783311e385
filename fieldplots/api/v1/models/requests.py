"""
API request models using Pydantic.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from fieldplots.domain.models import AnalysisSettings, TreeObservation
from fieldplots.domain.plot_layout import LayoutOverrides


class LayoutRequest(BaseModel):
    """Request body for layout generation."""
    plot_id: Optional[str] = Field(
        default=None,
        description="Physical plot id; omit for a design-time preview with random ids"
    )
    overrides: Optional[LayoutOverrides] = Field(
        default=None,
        description="Generation-time adjustments such as custom root dimensions"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "plot_id": "plot-0042",
                "overrides": {
                    "root_dimensions": {"kind": "RECTANGLE", "width": 12, "length": 12}
                }
            }
        }


class DiversityRequest(BaseModel):
    """Request body for diversity indices."""
    counts: List[float] = Field(
        description="Individuals per species"
    )

    class Config:
        json_schema_extra = {
            "example": {"counts": [10, 10, 10, 10]}
        }


class CommunityRequest(BaseModel):
    """Request body for community metrics."""
    observations: List[TreeObservation] = Field(
        description="Tree observations across the analysed plots"
    )
    plot_count: int = Field(
        description="Number of plots sampled, including plots without trees"
    )


class SACRequest(BaseModel):
    """Request body for species accumulation curves."""
    observations: List[TreeObservation] = Field(
        description="Tree observations across the analysed plots"
    )
    plot_ids: List[str] = Field(
        description="Plots forming the sampling pool (sampling order when ordered=true)"
    )
    iterations: Optional[int] = Field(
        default=None,
        description="Number of random permutations; server default when omitted"
    )
    seed: Optional[int] = Field(
        default=None,
        description="Random seed for a reproducible curve"
    )
    ordered: bool = Field(
        default=False,
        description="Accumulate along plot_ids as given instead of randomizing"
    )


class StandStructureRequest(BaseModel):
    """Request body for stand structure summaries."""
    trees: List[TreeObservation] = Field(
        description="Tree observations inside the surveyed area"
    )
    area_m2: float = Field(
        description="Surveyed area in m²"
    )
    settings: AnalysisSettings = Field(
        default_factory=AnalysisSettings,
        description="Allometry settings"
    )
