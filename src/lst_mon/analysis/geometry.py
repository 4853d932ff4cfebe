import json
import logging
import os

import numpy as np
import pyproj
from shapely.geometry import Point, Polygon, mapping, shape
from shapely.ops import transform as shapely_transform, unary_union
from rasterio.features import geometry_mask
from rasterio.transform import from_bounds

from ..config import POINT_BUFFER_M
from ..exceptions import InputError

logger = logging.getLogger(__name__)


def _utm_crs_for(lon: float, lat: float) -> str:
    utm_zone = int((lon + 180) / 6) + 1
    hemisphere = 'north' if lat >= 0 else 'south'
    # Use Proj string for CRS creation
    return f"+proj=utm +zone={utm_zone} +{hemisphere} +datum=WGS84"


def _area_ha(geom) -> float:
    centroid = geom.centroid
    project_to_utm = pyproj.Transformer.from_crs(
        "EPSG:4326",
        _utm_crs_for(centroid.x, centroid.y),
        always_xy=True
    ).transform
    return shapely_transform(project_to_utm, geom).area / 10000.0


def parse_coordinates(text: str) -> tuple:
    """
    Parses "lat, lon" text into a (lat, lon) tuple of floats.

    Raises:
        InputError: if the text is not two numbers within WGS84 range.
    """
    try:
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 2:
            raise ValueError(text)
        lat, lon = float(parts[0]), float(parts[1])
    except (AttributeError, ValueError) as e:
        raise InputError(f"Could not parse coordinates {text!r}; expected 'lat, lon'") from e

    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        raise InputError(f"Coordinates out of range: lat={lat}, lon={lon}")
    return lat, lon


def create_circular_boundary(center_lat: float, center_lon: float, radius_meters: float = POINT_BUFFER_M) -> dict:
    """
    Buffers a point by a metric radius (the point-analysis area of interest).

    Args:
        center_lat: Latitude of the circle center (WGS84, decimal degrees).
        center_lon: Longitude of the circle center (WGS84, decimal degrees).
        radius_meters: Buffer radius in meters.

    Returns:
        dict: A GeoJSON-like geometry dict with keys:
            - "type": "Polygon"
            - "coordinates": List of coordinate rings
            - "properties": {
                "center_lat": float,
                "center_lon": float,
                "radius_m": float,
                "area_ha": float (estimated area in hectares)
              }
    """
    if radius_meters <= 0:
        raise InputError(f"Buffer radius must be positive, got {radius_meters}")
    if not (-90.0 <= center_lat <= 90.0) or not (-180.0 <= center_lon <= 180.0):
        raise InputError(f"Coordinates out of range: lat={center_lat}, lon={center_lon}")

    # Buffer in UTM so the radius is metric
    utm_crs_str = _utm_crs_for(center_lon, center_lat)
    project_to_utm = pyproj.Transformer.from_crs(
        "EPSG:4326",
        utm_crs_str,
        always_xy=True
    ).transform
    project_to_wgs84 = pyproj.Transformer.from_crs(
        utm_crs_str,
        "EPSG:4326",
        always_xy=True
    ).transform

    point_wgs84 = Point(center_lon, center_lat)  # Point takes (x, y) -> (lon, lat)
    circle_utm = shapely_transform(project_to_utm, point_wgs84).buffer(radius_meters, resolution=16)
    circle_wgs84 = shapely_transform(project_to_wgs84, circle_utm)

    return {
        "type": "Polygon",
        "coordinates": [list(circle_wgs84.exterior.coords)],
        "properties": {
            "center_lat": center_lat,
            "center_lon": center_lon,
            "radius_m": radius_meters,
            "area_ha": (np.pi * radius_meters**2) / 10000.0
        }
    }


def create_polygon_boundary(vertices: list) -> dict:
    """
    Creates a polygon boundary from a list of (lat, lon) vertices.

    Raises:
        InputError: for fewer than 3 vertices or a self-intersecting ring.
    """
    if len(vertices) < 3:
        raise InputError("Polygon must have at least 3 vertices")

    # Convert (lat, lon) to (lon, lat) for GeoJSON/Shapely
    coords = [(lon, lat) for lat, lon in vertices]

    # Ensure closed ring
    if coords[0] != coords[-1]:
        coords.append(coords[0])

    poly = Polygon(coords)
    if not poly.is_valid or poly.is_empty:
        raise InputError("Polygon vertices do not describe a valid area")

    return {
        "type": "Polygon",
        "coordinates": [list(poly.exterior.coords)],
        "properties": {
            "num_vertices": len(vertices),
            "area_ha": _area_ha(poly)
        }
    }


def load_boundary_from_geojson(path: str, property_name: str = None, property_value=None) -> dict:
    """
    Loads an area of interest from a GeoJSON file.

    Features may be filtered by ``property_name == property_value``; all
    selected polygons are dissolved into one geometry.

    Raises:
        InputError: missing/unreadable file, incomplete filter, no matching
            feature, or no polygonal geometry.
    """
    if not path or not os.path.exists(path):
        raise InputError(f"Vector dataset not found: {path}")
    if (property_name is None) != (property_value is None):
        raise InputError("Both a filter property and a filter value are required")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise InputError(f"Could not read GeoJSON {path}: {e}") from e

    if data.get("type") == "FeatureCollection":
        features = data.get("features", [])
    elif data.get("type") == "Feature":
        features = [data]
    else:
        features = [{"type": "Feature", "properties": {}, "geometry": data}]

    if property_name is not None:
        if not any(property_name in (feat.get("properties") or {}) for feat in features):
            raise InputError(f"Property '{property_name}' not present in {path}")
        features = [
            feat for feat in features
            if str((feat.get("properties") or {}).get(property_name)) == str(property_value)
        ]
        if not features:
            raise InputError(f"No feature with {property_name} = {property_value!r} in {path}")

    try:
        geoms = [shape(feat["geometry"]) for feat in features if feat.get("geometry")]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise InputError(f"Invalid geometry in {path}: {e}") from e

    geoms = [g for g in geoms if g.geom_type in ("Polygon", "MultiPolygon")]
    if not geoms:
        raise InputError(f"No polygon geometry found in {path}")

    merged = unary_union(geoms)
    boundary = dict(mapping(merged))
    boundary["properties"] = {
        "source": os.path.basename(path),
        "num_features": len(geoms),
        "area_ha": _area_ha(merged)
    }
    logger.info(f"[load_boundary_from_geojson] Loaded {len(geoms)} feature(s), {boundary['properties']['area_ha']:.2f} ha")
    return boundary


def boundary_geometry(boundary: dict):
    """
    Returns the shapely geometry of a boundary dict.

    Raises:
        InputError: if the boundary is missing, malformed or empty.
    """
    if not boundary or "type" not in boundary or "coordinates" not in boundary:
        raise InputError("Boundary must be a GeoJSON geometry with 'type' and 'coordinates'")
    try:
        geom = shape({"type": boundary["type"], "coordinates": boundary["coordinates"]})
    except (TypeError, ValueError, AttributeError, IndexError) as e:
        raise InputError(f"Invalid boundary geometry: {e}") from e
    if geom.is_empty:
        raise InputError("Boundary geometry is empty")
    return geom


def boundary_to_geojson(boundary: dict) -> dict:
    """Plain GeoJSON geometry (no properties) suitable for a STAC intersects query."""
    return json.loads(json.dumps(mapping(boundary_geometry(boundary))))


def boundary_bounds(boundary: dict) -> list:
    """[min_lon, min_lat, max_lon, max_lat] of a boundary."""
    return list(boundary_geometry(boundary).bounds)


def create_field_mask(
    boundary: dict,
    image_shape: tuple,
    bbox_wgs84: list = None,
    epsg: int = None,
    transform=None,
    all_touched: bool = False
) -> np.ndarray:
    """
    Rasterises a boundary onto an image grid.

    Args:
        boundary: GeoJSON-like geometry dict (WGS84).
        image_shape: (rows, cols) tuple.
        bbox_wgs84: [min_lon, min_lat, max_lon, max_lat]; used to build the grid
            when no ``transform`` is given.
        epsg: EPSG code of the image grid. Defaults to 4326 if None.
        transform: affine transform of the image grid in its native CRS.
        all_touched: include every pixel the boundary touches, not only those
            whose centre falls inside.

    Returns:
        np.ndarray: Boolean 2D array (True = inside boundary).
    """
    geom_wgs84 = boundary_geometry(boundary)

    # Transform boundary to the native CRS if needed
    if epsg and epsg != 4326:
        project = pyproj.Transformer.from_crs(
            "EPSG:4326",
            f"EPSG:{epsg}",
            always_xy=True
        ).transform
        geom_native = shapely_transform(project, geom_wgs84)
    else:
        geom_native = geom_wgs84

    if transform is None:
        if bbox_wgs84 is None:
            raise ValueError("Either transform or bbox_wgs84 is required")
        left, bottom, right, top = bbox_wgs84
        if epsg and epsg != 4326:
            left, bottom, right, top = pyproj.Transformer.from_crs(
                "EPSG:4326", f"EPSG:{epsg}", always_xy=True
            ).transform_bounds(left, bottom, right, top)
        # Images are top-down, so y resolution is negative (top > bottom)
        transform = from_bounds(left, bottom, right, top, image_shape[1], image_shape[0])

    # geometry_mask returns True for OUTSIDE pixels unless invert=True
    return geometry_mask(
        [mapping(geom_native)],
        out_shape=image_shape,
        transform=transform,
        invert=True,
        all_touched=all_touched
    )


def apply_field_mask(
    data_array: np.ndarray,
    mask: np.ndarray,
    fill_value: float = np.nan
) -> np.ndarray:
    """
    Applies a boundary mask to a data array, setting outside pixels to fill_value.
    """
    if data_array.shape[:2] != mask.shape:
        raise ValueError(f"Shape mismatch: Data {data_array.shape} vs Mask {mask.shape}")

    result = np.array(data_array, dtype=np.float64, copy=True)
    result[~mask] = fill_value
    return result


def compute_field_statistics(
    data_array: np.ndarray,
    mask: np.ndarray,
) -> dict:
    """
    Computes statistics for in-boundary, non-NaN pixels of a data array.

    ``std`` is the population standard deviation. With no valid pixel the
    numeric entries are None and ``count`` is 0.
    """
    if data_array.shape != mask.shape:
        raise ValueError(f"Shape mismatch: Data {data_array.shape} vs Mask {mask.shape}")

    # Extract valid pixels (inside mask AND not NaN)
    field_pixels = data_array[mask]
    valid_pixels = field_pixels[~np.isnan(field_pixels)]

    if len(valid_pixels) == 0:
        return {
            "mean": None, "std": None, "min": None, "max": None, "count": 0
        }

    return {
        "mean": float(np.mean(valid_pixels)),
        "std": float(np.std(valid_pixels)),
        "min": float(np.min(valid_pixels)),
        "max": float(np.max(valid_pixels)),
        "count": int(len(valid_pixels))
    }
