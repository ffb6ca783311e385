"""
Built-in plot blueprints and the registry used to resolve them.

Every (id, version) pair that has ever been handed to surveyors stays
registered: stored sampling-unit ids are only meaningful under the geometry
of the version that produced them.
"""
from typing import Iterable, Optional

from fieldplots.domain.exceptions import BlueprintNotFoundError
from fieldplots.domain.plot_layout import (
    Anchor,
    ChildPosition,
    CircleShape,
    ColOrder,
    FixedChild,
    FixedListGenerator,
    GridGenerator,
    GridSpec,
    NodeRole,
    NodeType,
    PlotBlueprint,
    PlotNodeDefinition,
    RectangleShape,
    RowOrder,
)


def _quadrant_plot(blueprint_id: str, name: str, side: float) -> PlotBlueprint:
    return PlotBlueprint(
        id=blueprint_id,
        version=1,
        name=name,
        root=PlotNodeDefinition(
            type=NodeType.CONTAINER,
            label="Main Plot",
            code="P",
            role=NodeRole.MAIN_PLOT,
            shape=RectangleShape(width=side, length=side),
            children_generator=GridGenerator(
                grid=GridSpec(
                    rows=2,
                    cols=2,
                    row_order=RowOrder.TOP_TO_BOTTOM,
                    col_order=ColOrder.LEFT_TO_RIGHT,
                    label_pattern="Q{idx}",  # Q1..Q4
                    start_index=1,
                ),
            ),
        ),
    )


def _herb_subplot(label: str, code: str) -> PlotNodeDefinition:
    return PlotNodeDefinition(
        type=NodeType.SAMPLING_UNIT,
        label=label,
        code=code,
        role=NodeRole.SUBPLOT,
        shape=RectangleShape(width=1, length=1),
        tags=["herb", "ground_vegetation"],
    )


STD_10X10_QUADRANTS = _quadrant_plot("std-10x10-4q", "Standard 10x10m (4 Quadrants)", 10)

STD_20X20_QUADRANTS = _quadrant_plot("std-20x20-4q", "Standard 20x20m (4 Quadrants)", 20)

CIRCULAR_10M_FULL = PlotBlueprint(
    id="cir-10m-full",
    version=1,
    name="Circular 10m Radius (Single Unit)",
    root=PlotNodeDefinition(
        type=NodeType.SAMPLING_UNIT,  # the whole plot is the unit
        label="Main Plot",
        code="P",
        role=NodeRole.MAIN_PLOT,
        shape=CircleShape(radius=10),
    ),
)

STD_10X10_WITH_HERB_SUBPLOTS = PlotBlueprint(
    id="std-10x10-herb-subplots",
    version=1,
    name="10x10m with Corner Herb Subplots",
    root=PlotNodeDefinition(
        type=NodeType.CONTAINER,
        label="Main Plot",
        code="P",
        role=NodeRole.MAIN_PLOT,
        shape=RectangleShape(width=10, length=10),
        children_generator=FixedListGenerator(
            children=[
                FixedChild(
                    definition=_herb_subplot("Herb-NW", "H-NW"),
                    position=ChildPosition(
                        parent_anchor=Anchor.TOP_LEFT,
                        child_anchor=Anchor.TOP_LEFT,
                        offset_x=0.5,
                        offset_y=-0.5,
                    ),
                ),
                FixedChild(
                    definition=_herb_subplot("Herb-NE", "H-NE"),
                    position=ChildPosition(
                        parent_anchor=Anchor.TOP_RIGHT,
                        child_anchor=Anchor.TOP_RIGHT,
                        offset_x=-0.5,
                        offset_y=-0.5,
                    ),
                ),
                FixedChild(
                    definition=_herb_subplot("Herb-SW", "H-SW"),
                    position=ChildPosition(
                        parent_anchor=Anchor.BOTTOM_LEFT,
                        child_anchor=Anchor.BOTTOM_LEFT,
                        offset_x=0.5,
                        offset_y=0.5,
                    ),
                ),
                FixedChild(
                    definition=_herb_subplot("Herb-SE", "H-SE"),
                    position=ChildPosition(
                        parent_anchor=Anchor.BOTTOM_RIGHT,
                        child_anchor=Anchor.BOTTOM_RIGHT,
                        offset_x=-0.5,
                        offset_y=0.5,
                    ),
                ),
            ],
        ),
    ),
)


class BlueprintRegistry:
    """
    Catalog of blueprints keyed by (id, version).

    Lookups without a version resolve to the highest registered version,
    which is what new plots should use. Existing plots must always pass the
    version they were created with.
    """

    def __init__(self, blueprints: Iterable[PlotBlueprint] = ()):
        self._blueprints: dict[tuple[str, int], PlotBlueprint] = {}
        for blueprint in blueprints:
            self.register(blueprint)

    def register(self, blueprint: PlotBlueprint) -> None:
        if blueprint.key in self._blueprints:
            raise ValueError(
                f"Blueprint '{blueprint.id}' v{blueprint.version} is already registered; "
                "bump the version instead of replacing it"
            )
        self._blueprints[blueprint.key] = blueprint

    def get(self, blueprint_id: str, version: Optional[int] = None) -> PlotBlueprint:
        if version is not None:
            try:
                return self._blueprints[(blueprint_id, version)]
            except KeyError:
                raise BlueprintNotFoundError(blueprint_id, version) from None

        versions = self.versions(blueprint_id)
        if not versions:
            raise BlueprintNotFoundError(blueprint_id)
        return self._blueprints[(blueprint_id, versions[-1])]

    def versions(self, blueprint_id: str) -> list[int]:
        return sorted(v for (bp_id, v) in self._blueprints if bp_id == blueprint_id)

    def get_all(self) -> list[PlotBlueprint]:
        return [self._blueprints[key] for key in sorted(self._blueprints)]

    def __contains__(self, blueprint_id: str) -> bool:
        return bool(self.versions(blueprint_id))

    def __len__(self) -> int:
        return len(self._blueprints)


default_registry = BlueprintRegistry([
    STD_10X10_QUADRANTS,
    STD_20X20_QUADRANTS,
    CIRCULAR_10M_FULL,
    STD_10X10_WITH_HERB_SUBPLOTS,
])
