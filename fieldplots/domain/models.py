"""
Domain models for plots, observations and analysis results.

These models represent the core domain entities and should be independent
of any infrastructure concerns (store clients, HTTP routing, etc.).
"""
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class TreeCondition(str, Enum):
    ALIVE = "ALIVE"
    DEAD = "DEAD"
    DAMAGED = "DAMAGED"
    DYING = "DYING"


class Phenology(str, Enum):
    VEGETATIVE = "VEGETATIVE"
    FLOWERING = "FLOWERING"
    FRUITING = "FRUITING"
    SENESCING = "SENESCING"


class GrowthForm(str, Enum):
    HERB = "HERB"
    SHRUB = "SHRUB"
    CLIMBER = "CLIMBER"
    GRASS = "GRASS"
    FERN = "FERN"


class PlotStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class ProgressStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class BiomassModel(str, Enum):
    CHAVE_2014_HEIGHT = "CHAVE_2014_HEIGHT"
    BROWN_1997_MOIST = "BROWN_1997_MOIST"
    CHAVE_2005_DRY = "CHAVE_2005_DRY"


class GiniBand(str, Enum):
    UNIFORM = "UNIFORM"  # plantation-like, similar sized trees
    MODERATE = "MODERATE"  # natural regeneration or mixed age
    COMPLEX = "COMPLEX"  # old growth, multi-layered canopy


# ============================================================
# Plots
# ============================================================

class GeoLocation(BaseModel):
    """Averaged GPS fix of the plot origin."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    accuracy_m: float = Field(default=0.0, ge=0)
    altitude: Optional[float] = None


class Plot(BaseModel):
    """A physical survey plot laid out from a specific blueprint version."""
    id: str
    project_id: Optional[str] = None
    module_id: Optional[str] = None
    blueprint_id: str
    blueprint_version: int
    name: str
    code: Optional[str] = None
    coordinates: Optional[GeoLocation] = None
    orientation: float = Field(default=0.0, description="Azimuth of the plot Y axis in degrees")
    slope: Optional[float] = None
    aspect: Optional[str] = None
    habitat_type: Optional[str] = None
    status: PlotStatus = PlotStatus.PLANNED
    surveyors: List[str] = Field(default_factory=list)
    survey_date: Optional[str] = None
    custom_attributes: Dict[str, Any] = Field(default_factory=dict)


class SamplingUnitProgress(BaseModel):
    """Completion state of one sampling unit in one plot."""
    id: Optional[str] = None
    plot_id: str
    sampling_unit_id: str
    status: ProgressStatus = ProgressStatus.NOT_STARTED


# ============================================================
# Observations
# ============================================================

class Stem(BaseModel):
    """Single stem of a multi-stemmed individual."""
    id: Optional[str] = None
    gbh: float = Field(ge=0, description="Girth at breast height in cm")


class TreeObservation(BaseModel):
    """One tree recorded inside one sampling unit."""
    id: str
    plot_id: str
    sampling_unit_id: str
    tag_number: Optional[str] = None
    species_name: str = ""
    common_name: Optional[str] = None
    is_unknown: bool = False
    confidence_level: ConfidenceLevel = ConfidenceLevel.HIGH
    gbh: Optional[float] = Field(default=None, ge=0, description="Single-stem GBH in cm")
    stems: List[Stem] = Field(default_factory=list)
    height: Optional[float] = Field(default=None, ge=0, description="Height in m")
    crown_diameter: Optional[float] = Field(default=None, ge=0)
    condition: TreeCondition = TreeCondition.ALIVE
    phenology: Phenology = Phenology.VEGETATIVE
    local_x: Optional[float] = None
    local_y: Optional[float] = None
    remarks: Optional[str] = None

    @property
    def stem_count(self) -> int:
        return len(self.stems) or 1

    @property
    def effective_gbh(self) -> float:
        """
        GBH of the single stem with the same basal area as all recorded stems.

        Root-sum-of-squares of stem GBHs when stems are recorded, the plain
        GBH otherwise, 0 when nothing was measured.
        """
        if self.stems:
            return math.sqrt(sum(stem.gbh ** 2 for stem in self.stems))
        return self.gbh or 0.0


class VegetationObservation(BaseModel):
    """Herb/shrub patch recorded inside one sampling unit."""
    id: str
    plot_id: str
    sampling_unit_id: str
    species_name: str = ""
    growth_form: GrowthForm = GrowthForm.HERB
    abundance_count: Optional[int] = Field(default=None, ge=0)
    cover_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    avg_height_cm: Optional[float] = Field(default=None, ge=0)
    is_unknown: bool = False
    confidence_level: Optional[ConfidenceLevel] = None


# ============================================================
# Analysis results
# ============================================================

class SACPoint(BaseModel):
    """Species accumulation curve point."""
    plots_sampled: int
    richness: float = Field(description="Mean cumulative species count")
    sd: float = Field(description="Population standard deviation across permutations")


class SpeciesStats(BaseModel):
    """Community metrics for one species."""
    species_name: str
    abundance: int
    basal_area: float = Field(description="Sum of basal areas in m²")
    frequency: float = Field(description="% of plots where the species occurs")
    relative_abundance: float
    relative_basal_area: float
    relative_frequency: float
    ivi: float = Field(description="Importance Value Index (0-300)")


class AnalysisSettings(BaseModel):
    """Allometry settings for stand structure calculations."""
    biomass_model: BiomassModel = BiomassModel.CHAVE_2014_HEIGHT
    wood_density: float = Field(default=0.6, gt=0, description="g/cm³")
    carbon_fraction: float = Field(default=0.47, gt=0, le=1)
    min_gbh_for_carbon: float = Field(
        default=10.0,
        ge=0,
        description="Trees below this GBH (cm) count as regeneration"
    )


class StandStructure(BaseModel):
    """Per-hectare stand summary of a plot or sampling unit."""
    stem_density_ha: float
    basal_area_ha: float
    agb_ha: float = Field(description="Above-ground biomass in Mg/ha")
    carbon_ha: float = Field(description="Carbon stock in Mg C/ha")
    qmd: float = Field(description="Quadratic mean diameter in cm")
    loreys_height: float
    gini_coefficient: Optional[float] = None
    gini_band: Optional[GiniBand] = None
    regeneration_count: int
    shannon: Optional[float] = None
    simpson: Optional[float] = None
    richness: int
    is_estimate: bool


class DiversitySummary(BaseModel):
    """Alpha diversity of one observation set."""
    richness: int
    individuals: int
    shannon: float
    simpson: float


class ModuleReport(BaseModel):
    """Full analysis of every plot in a survey module."""
    module_id: str
    plot_count: int
    tree_count: int
    diversity: DiversitySummary
    community: List[SpeciesStats]
    sac: List[SACPoint]


class UnitComparison(BaseModel):
    """Percentage difference of a sampling unit relative to its plot."""
    basal_area_diff: float
    carbon_diff: float
    qmd_diff: float
    stem_density_diff: float


class PlotSummary(BaseModel):
    """Stand structure of the trees in a plot plus herb-layer diversity."""
    plot_id: str
    surveyed_area_m2: float
    stand: StandStructure
    herb_layer: DiversitySummary
    unit_id: Optional[str] = None
    unit_area_m2: Optional[float] = None
    unit: Optional[StandStructure] = None
    comparison: Optional[UnitComparison] = None
