"""
Geospatial projection utilities for placing plot layouts on the map.
"""
import math
from typing import Dict, List, Tuple

from pyproj import Transformer

from fieldplots.domain.plot_layout import PlotNodeInstance
from fieldplots.utils.plot_geometry import footprint_coordinates
from fieldplots.utils.tree_traversal import iter_nodes


def get_utm_zone(longitude: float) -> int:
    """
    Calculate the UTM zone number from longitude.

    Args:
        longitude: Longitude in degrees

    Returns:
        UTM zone number (1-60)
    """
    return min(int((longitude + 180) / 6) + 1, 60)


def get_utm_crs(longitude: float, latitude: float) -> str:
    """
    Get the appropriate UTM CRS (Coordinate Reference System) for a location.

    Args:
        longitude: Longitude in degrees
        latitude: Latitude in degrees

    Returns:
        EPSG code for the UTM zone
    """
    zone = get_utm_zone(longitude)
    # Northern hemisphere: EPSG:326XX, Southern hemisphere: EPSG:327XX
    hemisphere = "6" if latitude >= 0 else "7"
    return f"EPSG:32{hemisphere}{zone:02d}"


def rotate_to_azimuth(x: float, y: float, orientation: float) -> Tuple[float, float]:
    """
    Rotate plot-local offsets into east/north offsets.

    Args:
        x: Offset along the plot X axis in meters
        y: Offset along the plot Y axis in meters
        orientation: Azimuth of the plot Y axis in degrees, clockwise from north

    Returns:
        Tuple of (east, north) offsets in meters
    """
    theta = math.radians(orientation)
    east = x * math.cos(theta) + y * math.sin(theta)
    north = -x * math.sin(theta) + y * math.cos(theta)
    return (east, north)


def local_to_latlon(
    coordinates: List[Tuple[float, float]],
    origin_lat: float,
    origin_lng: float,
    orientation: float = 0.0,
) -> List[Tuple[float, float]]:
    """
    Convert plot-local coordinates (meters) to latitude/longitude.

    Offsets are applied in the UTM zone of the origin, so grid convergence
    is ignored; the error is negligible at plot scale.

    Args:
        coordinates: List of (x, y) plot-local coordinates in meters
        origin_lat: Latitude of the plot origin
        origin_lng: Longitude of the plot origin
        orientation: Azimuth of the plot Y axis in degrees

    Returns:
        List of (latitude, longitude) tuples in degrees
    """
    utm_crs = get_utm_crs(origin_lng, origin_lat)

    # Create transformer from WGS84 (EPSG:4326) to UTM
    forward = Transformer.from_crs("EPSG:4326", utm_crs, always_xy=True)
    reverse = Transformer.from_crs(utm_crs, "EPSG:4326", always_xy=True)

    origin_x, origin_y = forward.transform(origin_lng, origin_lat)

    latlon = []
    for x, y in coordinates:
        east, north = rotate_to_azimuth(x, y, orientation)
        lon, lat = reverse.transform(origin_x + east, origin_y + north)
        latlon.append((lat, lon))

    return latlon


def georeference_layout(
    root: PlotNodeInstance,
    origin_lat: float,
    origin_lng: float,
    orientation: float = 0.0,
) -> Dict[str, List[Tuple[float, float]]]:
    """
    Footprint rings of every layout node in latitude/longitude.

    Args:
        root: Root of a generated layout
        origin_lat: Latitude of the plot origin (layout point 0, 0)
        origin_lng: Longitude of the plot origin
        orientation: Azimuth of the plot Y axis in degrees

    Returns:
        Mapping of node id to its footprint ring as (latitude, longitude) pairs
    """
    return {
        node.id: local_to_latlon(footprint_coordinates(node), origin_lat, origin_lng, orientation)
        for node in iter_nodes(root)
    }
