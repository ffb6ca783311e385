"""
Domain service: Plot layout generation from versioned blueprints.

Walks a blueprint's node definitions and produces the concrete node tree for
one plot: absolute coordinates (meters from the plot origin), resolved labels,
structural paths and node ids.

Two modes are supported:
- committed: ids are a pure function of (plot id, blueprint id, version, path),
  so a layout regenerated tomorrow addresses the same sampling units that
  observations were recorded against today
- preview: ids are random and flagged as unstable; used for design-time
  rendering before a plot exists
"""
import logging
import uuid
from typing import Callable, Optional

from fieldplots.domain.exceptions import MalformedBlueprintError
from fieldplots.domain.plot_layout import (
    Anchor,
    CircleShape,
    ColOrder,
    FixedListGenerator,
    GridGenerator,
    LayoutOverrides,
    LineShape,
    NestedGenerator,
    NodeRole,
    NodeType,
    PlotBlueprint,
    PlotNodeDefinition,
    PlotNodeInstance,
    PointShape,
    RectangleShape,
    RowOrder,
    ShapeDefinition,
)
from fieldplots.utils.tree_traversal import iter_nodes, iter_sampling_units

logger = logging.getLogger(__name__)

# Changing this value re-keys every committed layout. Never change it.
LAYOUT_ID_NAMESPACE = uuid.UUID("6f1c2b0e-3a47-5d8e-9b61-0c4a7e2f9d13")

DEFAULT_LINE_WIDTH = 0.1
DEFAULT_POINT_RADIUS = 0.1

IdFactory = Callable[[str], str]


def stable_node_id(plot_id: str, blueprint_id: str, version: int, path: str) -> str:
    """
    Derive the persistent id of a layout node.

    Args:
        plot_id: Physical plot the layout belongs to
        blueprint_id: Blueprint id
        version: Blueprint version
        path: Structural path of the node (e.g. ``root/r0c1``)

    Returns:
        UUID5 string, identical for identical inputs
    """
    return str(uuid.uuid5(LAYOUT_ID_NAMESPACE, f"{plot_id}|{blueprint_id}|{version}|{path}"))


def bounding_box(shape: ShapeDefinition) -> tuple[float, float]:
    """
    Width (X) and height (Y) of the box enclosing a shape.

    Args:
        shape: Shape definition

    Returns:
        Tuple of (width, height) in meters

    Raises:
        MalformedBlueprintError: If the shape kind is not supported
    """
    if isinstance(shape, RectangleShape):
        return (shape.width, shape.length)
    if isinstance(shape, CircleShape):
        return (shape.radius * 2, shape.radius * 2)
    if isinstance(shape, LineShape):
        return (shape.length, shape.width or DEFAULT_LINE_WIDTH)
    if isinstance(shape, PointShape):
        diameter = (shape.radius or DEFAULT_POINT_RADIUS) * 2
        return (diameter, diameter)

    # No default: zero dimensions would silently corrupt every descendant
    kind = getattr(shape, "kind", type(shape).__name__)
    raise MalformedBlueprintError(f"Unsupported shape kind: {kind!r}")


def anchor_point(anchor: Anchor, width: float, height: float) -> tuple[float, float]:
    """Offset of ``anchor`` from the bottom-left corner of a width x height box."""
    if anchor == Anchor.CENTER:
        return (width / 2, height / 2)
    if anchor == Anchor.TOP_LEFT:
        return (0.0, height)
    if anchor == Anchor.TOP_RIGHT:
        return (width, height)
    if anchor == Anchor.BOTTOM_LEFT:
        return (0.0, 0.0)
    if anchor == Anchor.BOTTOM_RIGHT:
        return (width, 0.0)
    raise MalformedBlueprintError(f"Unsupported anchor: {anchor!r}")


def format_grid_label(pattern: str, index: int, row: int, col: int) -> str:
    """
    Resolve a grid label pattern.

    Args:
        pattern: Pattern with {idx}, {r} and {c} placeholders
        index: Running cell index (already offset by start_index)
        row: Zero-based grid row
        col: Zero-based grid column

    Returns:
        Resolved label, e.g. ``Q3`` or ``R2C1``
    """
    return (
        pattern
        .replace("{idx}", str(index))
        .replace("{r}", str(row + 1))
        .replace("{c}", str(col + 1))
    )


class LayoutGenerator:
    """
    Domain service that realizes a blueprint as a concrete node tree.

    The generator holds no state between calls; ``commit`` and ``preview``
    can be called any number of times on the same instance.
    """

    def __init__(
        self,
        blueprint: PlotBlueprint,
        overrides: Optional[LayoutOverrides] = None,
    ):
        """
        Initialize the generator.

        Args:
            blueprint: Blueprint to realize
            overrides: Optional generation-time adjustments (e.g. root size)
        """
        self.blueprint = blueprint
        self.overrides = overrides or LayoutOverrides()

    def commit(self, plot_id: str) -> PlotNodeInstance:
        """
        Generate the persistent layout for a physical plot.

        Args:
            plot_id: Id of the plot; required and non-empty

        Returns:
            Root node with deterministic ids

        Raises:
            MalformedBlueprintError: If the blueprint cannot be realized
            ValueError: If plot_id is empty
        """
        if not plot_id:
            raise ValueError("A committed layout requires a non-empty plot_id")

        def make_id(path: str) -> str:
            return stable_node_id(plot_id, self.blueprint.id, self.blueprint.version, path)

        root = self._build(make_id, plot_id=plot_id, stable=True)
        logger.info(
            f"Generated layout for plot {plot_id} from {self.blueprint.id} "
            f"v{self.blueprint.version}: {sum(1 for _ in iter_nodes(root))} nodes, "
            f"{sum(1 for _ in iter_sampling_units(root))} sampling units"
        )
        return root

    def preview(self) -> PlotNodeInstance:
        """
        Generate a throwaway layout for design-time rendering.

        Ids are random and the nodes are flagged ``stable=False``; never
        record observations against them.
        """
        root = self._build(lambda path: str(uuid.uuid4()), plot_id=None, stable=False)
        logger.debug(f"Generated preview layout for {self.blueprint.id} v{self.blueprint.version}")
        return root

    def _build(
        self,
        make_id: IdFactory,
        plot_id: Optional[str],
        stable: bool,
    ) -> PlotNodeInstance:
        root_def = self.blueprint.root
        root_shape = self.overrides.root_dimensions or root_def.shape
        return self._process_node(
            definition=root_def,
            shape=root_shape,
            x=0.0,
            y=0.0,
            path="root",
            label=root_def.label or "Node",
            make_id=make_id,
            plot_id=plot_id,
            stable=stable,
        )

    def _process_node(
        self,
        definition: PlotNodeDefinition,
        shape: ShapeDefinition,
        x: float,
        y: float,
        path: str,
        label: str,
        make_id: IdFactory,
        plot_id: Optional[str],
        stable: bool,
    ) -> PlotNodeInstance:
        """
        Realize one definition at an absolute position and recurse into its children.
        """
        # Fail on malformed shapes before anything is emitted
        width, height = bounding_box(shape)

        instance = PlotNodeInstance(
            id=make_id(path),
            stable=stable,
            blueprint_id=self.blueprint.id,
            blueprint_version=self.blueprint.version,
            plot_id=plot_id,
            type=definition.type,
            label=label,
            code=definition.code,
            path=path,
            shape=shape,
            x=x,
            y=y,
            role=definition.role,
            tags=list(definition.tags),
        )

        generator = definition.children_generator
        if generator is None:
            return instance

        if definition.type != NodeType.CONTAINER:
            raise MalformedBlueprintError(
                f"Node at '{path}' is a {definition.type.value} and cannot have children"
            )

        if isinstance(generator, GridGenerator):
            placements = self._grid_placements(generator, width, height, path)
        elif isinstance(generator, NestedGenerator):
            placements = self._nested_placements(generator, width, height, path)
        elif isinstance(generator, FixedListGenerator):
            placements = self._fixed_placements(generator, width, height, path)
        else:
            method = getattr(generator, "method", type(generator).__name__)
            raise MalformedBlueprintError(f"Unsupported children generator at '{path}': {method!r}")

        for child_def, child_shape, dx, dy, child_path, child_label in placements:
            instance.children.append(self._process_node(
                definition=child_def,
                shape=child_shape,
                x=x + dx,
                y=y + dy,
                path=child_path,
                label=child_label,
                make_id=make_id,
                plot_id=plot_id,
                stable=stable,
            ))

        return instance

    def _grid_placements(
        self,
        generator: GridGenerator,
        width: float,
        height: float,
        path: str,
    ) -> list[tuple]:
        """
        Tile the parent's bounding box into rows x cols cells.

        Cells are emitted row-major in logical order; row_order/col_order only
        decide where logical row 0 / column 0 sit geometrically.
        """
        grid = generator.grid
        if grid.rows < 1 or grid.cols < 1:
            raise MalformedBlueprintError(
                f"Grid at '{path}' needs at least one row and one column "
                f"(got rows={grid.rows}, cols={grid.cols})"
            )

        cell_width = width / grid.cols
        cell_height = height / grid.rows
        cell_shape = RectangleShape(width=cell_width, length=cell_height)

        if grid.child is not None:
            template = grid.child.model_copy(update={"shape": cell_shape})
        else:
            template = PlotNodeDefinition(
                type=NodeType.SAMPLING_UNIT,
                shape=cell_shape,
                role=NodeRole.QUADRANT,
            )

        placements = []
        for r in range(grid.rows):
            for c in range(grid.cols):
                if grid.row_order == RowOrder.TOP_TO_BOTTOM:
                    cell_y = (grid.rows - 1 - r) * cell_height
                else:
                    cell_y = r * cell_height

                if grid.col_order == ColOrder.LEFT_TO_RIGHT:
                    cell_x = c * cell_width
                else:
                    cell_x = (grid.cols - 1 - c) * cell_width

                index = r * grid.cols + c + grid.start_index
                label = format_grid_label(grid.label_pattern, index, r, c)
                placements.append(
                    (template, cell_shape, cell_x, cell_y, f"{path}/r{r}c{c}", label)
                )

        logger.debug(
            f"Grid at '{path}': {grid.rows}x{grid.cols} cells of "
            f"{cell_width:.2f}m x {cell_height:.2f}m"
        )
        return placements

    def _nested_placements(
        self,
        generator: NestedGenerator,
        width: float,
        height: float,
        path: str,
    ) -> list[tuple]:
        child = generator.child
        child_width, child_height = bounding_box(child.shape)
        dx = (width - child_width) / 2
        dy = (height - child_height) / 2
        return [(child, child.shape, dx, dy, f"{path}/nested", child.label or "Node")]

    def _fixed_placements(
        self,
        generator: FixedListGenerator,
        width: float,
        height: float,
        path: str,
    ) -> list[tuple]:
        placements = []
        for i, item in enumerate(generator.children):
            child = item.definition
            position = item.position
            child_width, child_height = bounding_box(child.shape)

            px, py = anchor_point(position.parent_anchor, width, height)
            cx, cy = anchor_point(position.child_anchor, child_width, child_height)

            dx = px - cx + position.offset_x
            dy = py - cy + position.offset_y
            placements.append(
                (child, child.shape, dx, dy, f"{path}/child{i}", child.label or "Node")
            )
        return placements


def commit_layout(
    blueprint: PlotBlueprint,
    plot_id: str,
    overrides: Optional[LayoutOverrides] = None,
) -> PlotNodeInstance:
    """Generate the persistent, deterministic layout of ``blueprint`` for ``plot_id``."""
    return LayoutGenerator(blueprint, overrides).commit(plot_id)


def preview_layout(
    blueprint: PlotBlueprint,
    overrides: Optional[LayoutOverrides] = None,
) -> PlotNodeInstance:
    """Generate a design-time layout with random, non-persistent ids."""
    return LayoutGenerator(blueprint, overrides).preview()


def generate_layout(
    blueprint: PlotBlueprint,
    overrides: Optional[LayoutOverrides] = None,
    plot_id: Optional[str] = None,
) -> PlotNodeInstance:
    """
    Generate a layout, committed when ``plot_id`` is given and preview otherwise.

    Args:
        blueprint: Blueprint to realize
        overrides: Optional generation-time adjustments
        plot_id: Physical plot id; omit for a design-time preview

    Returns:
        Root PlotNodeInstance; check ``stable`` before persisting ids
    """
    if plot_id is None:
        return preview_layout(blueprint, overrides)
    return commit_layout(blueprint, plot_id, overrides)
