"""
Geometry helpers for generated plot layouts.

Provides utilities for:
- Exact areas of layout shapes
- Shapely footprints of layout nodes in plot coordinates
- Point-in-sampling-unit lookup
"""
import math
from typing import Optional

from shapely.geometry import Point, Polygon, box
from shapely.geometry.base import BaseGeometry

from fieldplots.domain.exceptions import MalformedBlueprintError
from fieldplots.domain.plot_layout import (
    CircleShape,
    LineShape,
    PlotNodeInstance,
    PointShape,
    RectangleShape,
    ShapeDefinition,
)
from fieldplots.services.domain.layout_generator import (
    DEFAULT_LINE_WIDTH,
    DEFAULT_POINT_RADIUS,
    bounding_box,
)
from fieldplots.utils.tree_traversal import iter_sampling_units


def shape_area(shape: ShapeDefinition) -> float:
    """
    Area of a shape in m².

    Args:
        shape: Shape definition

    Returns:
        Exact area (circles use πr², not a polygon approximation)
    """
    if isinstance(shape, RectangleShape):
        return shape.width * shape.length
    if isinstance(shape, CircleShape):
        return math.pi * shape.radius ** 2
    if isinstance(shape, LineShape):
        return shape.length * (shape.width or DEFAULT_LINE_WIDTH)
    if isinstance(shape, PointShape):
        return math.pi * (shape.radius or DEFAULT_POINT_RADIUS) ** 2

    kind = getattr(shape, "kind", type(shape).__name__)
    raise MalformedBlueprintError(f"Unsupported shape kind: {kind!r}")


def node_footprint(node: PlotNodeInstance) -> BaseGeometry:
    """
    Footprint of a layout node in plot coordinates.

    Rectangles, lines and grid cells map to boxes anchored at the node's
    (x, y); circles and points become discs centred in their bounding box.

    Args:
        node: Generated layout node

    Returns:
        Shapely geometry in meters
    """
    width, height = bounding_box(node.shape)
    if isinstance(node.shape, (CircleShape, PointShape)):
        return Point(node.x + width / 2, node.y + height / 2).buffer(width / 2)
    return box(node.x, node.y, node.x + width, node.y + height)


def footprint_coordinates(node: PlotNodeInstance) -> list[tuple[float, float]]:
    """Exterior ring of a node's footprint as (x, y) tuples."""
    geometry = node_footprint(node)
    if not isinstance(geometry, Polygon):
        raise ValueError(f"Footprint of node {node.id} is not a polygon")
    return [(float(x), float(y)) for x, y in geometry.exterior.coords]


def locate_sampling_unit(
    root: PlotNodeInstance,
    x: float,
    y: float,
) -> Optional[PlotNodeInstance]:
    """
    Find the sampling unit covering a point.

    Points on a shared edge belong to the first unit in layout order.

    Args:
        root: Root of a generated layout
        x: X coordinate in meters from the plot origin
        y: Y coordinate in meters from the plot origin

    Returns:
        The covering sampling unit, or None if the point lies outside all units
    """
    point = Point(x, y)
    for unit in iter_sampling_units(root):
        if node_footprint(unit).covers(point):
            return unit
    return None
