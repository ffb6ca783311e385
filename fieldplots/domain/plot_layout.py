"""
Plot layout models.

Design-time models (``PlotBlueprint``, ``PlotNodeDefinition`` and the
children generators) describe how a plot subdivides. Runtime models
(``PlotNodeInstance``) are the concrete geometry produced for one physical
plot by the layout generator.

All coordinates are in meters. ``x``/``y`` on an instance are the bottom-left
corner of the node's bounding box, measured from the plot origin.
"""
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class NodeType(str, Enum):
    CONTAINER = "CONTAINER"
    SAMPLING_UNIT = "SAMPLING_UNIT"


class NodeRole(str, Enum):
    MAIN_PLOT = "MAIN_PLOT"
    QUADRANT = "QUADRANT"
    SUBPLOT = "SUBPLOT"
    TRANSECT = "TRANSECT"
    POINT = "POINT"
    OTHER = "OTHER"


class RowOrder(str, Enum):
    TOP_TO_BOTTOM = "TOP_TO_BOTTOM"
    BOTTOM_TO_TOP = "BOTTOM_TO_TOP"


class ColOrder(str, Enum):
    LEFT_TO_RIGHT = "LEFT_TO_RIGHT"
    RIGHT_TO_LEFT = "RIGHT_TO_LEFT"


class Anchor(str, Enum):
    CENTER = "CENTER"
    TOP_LEFT = "TOP_LEFT"
    TOP_RIGHT = "TOP_RIGHT"
    BOTTOM_LEFT = "BOTTOM_LEFT"
    BOTTOM_RIGHT = "BOTTOM_RIGHT"


# ============================================================
# Shapes
# ============================================================

class RectangleShape(BaseModel):
    """Rectangle; ``length`` runs along the Y axis."""
    kind: Literal["RECTANGLE"] = "RECTANGLE"
    width: float = Field(gt=0, description="Extent along X in meters")
    length: float = Field(gt=0, description="Extent along Y in meters")

    class Config:
        frozen = True


class CircleShape(BaseModel):
    kind: Literal["CIRCLE"] = "CIRCLE"
    radius: float = Field(gt=0, description="Radius in meters")

    class Config:
        frozen = True


class LineShape(BaseModel):
    """Transect line."""
    kind: Literal["LINE"] = "LINE"
    length: float = Field(gt=0, description="Transect length in meters")
    width: Optional[float] = Field(default=None, gt=0, description="Belt width in meters")

    class Config:
        frozen = True


class PointShape(BaseModel):
    """Point quadrat."""
    kind: Literal["POINT"] = "POINT"
    radius: Optional[float] = Field(default=None, gt=0)

    class Config:
        frozen = True


ShapeDefinition = Annotated[
    Union[RectangleShape, CircleShape, LineShape, PointShape],
    Field(discriminator="kind"),
]


# ============================================================
# Children generators
# ============================================================

class GridSpec(BaseModel):
    """Regular subdivision of the parent's bounding box."""
    rows: int
    cols: int
    row_order: RowOrder = RowOrder.TOP_TO_BOTTOM
    col_order: ColOrder = ColOrder.LEFT_TO_RIGHT
    label_pattern: str = Field(
        default="Q{idx}",
        description="Placeholders: {idx} running index, {r}/{c} 1-based row/column"
    )
    start_index: int = 1
    child: Optional["PlotNodeDefinition"] = Field(
        default=None,
        description="Template for every cell; its shape is replaced by the cell rectangle"
    )

    class Config:
        frozen = True


class GridGenerator(BaseModel):
    method: Literal["GRID"] = "GRID"
    grid: GridSpec

    class Config:
        frozen = True


class NestedGenerator(BaseModel):
    """Single child centred inside the parent."""
    method: Literal["NESTED"] = "NESTED"
    child: "PlotNodeDefinition"

    class Config:
        frozen = True


class ChildPosition(BaseModel):
    parent_anchor: Anchor
    child_anchor: Anchor = Anchor.CENTER
    offset_x: float = 0.0
    offset_y: float = 0.0

    class Config:
        frozen = True


class FixedChild(BaseModel):
    definition: "PlotNodeDefinition"
    position: ChildPosition

    class Config:
        frozen = True


class FixedListGenerator(BaseModel):
    """Explicitly positioned children (corner herb subplots and the like)."""
    method: Literal["FIXED_LIST"] = "FIXED_LIST"
    children: List[FixedChild]

    class Config:
        frozen = True


ChildrenGenerator = Annotated[
    Union[GridGenerator, NestedGenerator, FixedListGenerator],
    Field(discriminator="method"),
]


# ============================================================
# Blueprint (design time)
# ============================================================

class PlotNodeDefinition(BaseModel):
    """Design-time node. Only containers may subdivide."""
    type: NodeType
    label: Optional[str] = None
    code: Optional[str] = None
    shape: ShapeDefinition
    children_generator: Optional[ChildrenGenerator] = None
    role: Optional[NodeRole] = None
    tags: List[str] = Field(default_factory=list)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _leaf_units_have_no_generator(self) -> "PlotNodeDefinition":
        if self.type == NodeType.SAMPLING_UNIT and self.children_generator is not None:
            raise ValueError("SAMPLING_UNIT nodes are leaves and cannot carry a children_generator")
        return self


class PlotBlueprint(BaseModel):
    """
    Versioned layout template.

    Bump ``version`` on any change that moves or renames nodes; plots keep
    pointing at the version they were created with.
    """
    id: str
    version: int = Field(ge=1)
    name: str
    root: PlotNodeDefinition

    class Config:
        frozen = True

    @property
    def key(self) -> tuple[str, int]:
        return (self.id, self.version)


class LayoutOverrides(BaseModel):
    """Generation-time adjustments that leave the blueprint untouched."""
    root_dimensions: Optional[ShapeDefinition] = None


# ============================================================
# Instance (runtime)
# ============================================================

class PlotNodeInstance(BaseModel):
    """Concrete node of a generated layout."""
    id: str
    stable: bool = Field(
        description="True when the id is derived from the plot id and safe to persist"
    )
    blueprint_id: str
    blueprint_version: int
    plot_id: Optional[str] = None
    type: NodeType
    label: str
    code: Optional[str] = None
    path: str
    shape: ShapeDefinition
    x: float
    y: float
    rotation: float = 0.0
    role: Optional[NodeRole] = None
    tags: List[str] = Field(default_factory=list)
    children: List["PlotNodeInstance"] = Field(default_factory=list)

    @property
    def is_sampling_unit(self) -> bool:
        return self.type == NodeType.SAMPLING_UNIT


GridSpec.model_rebuild()
NestedGenerator.model_rebuild()
FixedChild.model_rebuild()
PlotNodeDefinition.model_rebuild()
PlotNodeInstance.model_rebuild()
