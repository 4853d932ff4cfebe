"""
LST analysis pipeline.

Flow:
1) Validate the area of interest and date range
2) Search Landsat 8 and 9 scenes (collection builder)
3) Per scene, concurrently: read -> cloud mask -> LST -> regional statistics
4) Join, then aggregate the records (overall / monthly / yearly / seasonal)
"""

import logging
import threading
from typing import Callable, Optional, Sequence

from .analysis.aggregate import aggregate_timeseries, year_span
from .analysis.extract import extract_observation
from .analysis.geometry import (
    apply_field_mask,
    boundary_geometry,
    create_circular_boundary,
    create_field_mask,
    load_boundary_from_geojson
)
from .config import (
    AREA_CLOUD_COVER, DEFAULT_END_DATE, DEFAULT_START_DATE, LANDSAT_COLLECTIONS,
    LST_BAND, MAX_PIXELS, MAX_WORKERS, POINT_BUFFER_M, POINT_CLOUD_COVER, SCALE_M
)
from .data.collection import map_scenes, prepare_image, search_scenes, validate_date_range
from .exceptions import SourceAccessError
from .models import LSTAnalysis, RasterImage

logger = logging.getLogger(__name__)


def clip_to_boundary(image: RasterImage, boundary: dict, band: str = LST_BAND) -> RasterImage:
    """Returns the image with ``band`` set to NaN outside the boundary."""
    region = create_field_mask(boundary, image.shape, transform=image.transform, epsg=image.epsg)
    bands = dict(image.bands)
    bands[band] = apply_field_mask(image.bands[band], region)
    return image._replace(bands=bands, valid=image.valid & region)


def run_lst_analysis(
    boundary: dict,
    start_date=DEFAULT_START_DATE,
    end_date=DEFAULT_END_DATE,
    cloud_cover: float = AREA_CLOUD_COVER,
    collections: Sequence[str] = LANDSAT_COLLECTIONS,
    resolution: float = SCALE_M,
    max_pixels: int = MAX_PIXELS,
    max_workers: int = MAX_WORKERS,
    progress_callback: Callable[[int, int, str], None] = None
) -> LSTAnalysis:
    """
    Computes the LST time series and its statistics over an area of interest.

    Args:
        boundary: GeoJSON-like polygon dict (WGS84).
        start_date: First day of the range (inclusive), YYYY-MM-DD.
        end_date: Last day of the range (exclusive), YYYY-MM-DD.
        cloud_cover: Scene-level cloud cover threshold in percent.
        collections: STAC collections to merge (Landsat 8 and 9 by default).
        resolution: Sampling resolution in metres.
        max_pixels: Per-read pixel budget; larger reads are downsampled.
        max_workers: Thread pool size for per-scene processing.
        progress_callback: Optional callback(current, total, message).

    Returns:
        LSTAnalysis with records sorted by date, summary statistics and the
        most recent image clipped to the boundary.

    Raises:
        InputError: invalid boundary or date range (nothing is requested).
        SourceAccessError: the catalogue is unreachable, or no scene could be read.
    """
    start, end = validate_date_range(start_date, end_date)
    boundary_geometry(boundary)

    logger.info(f"[run_lst_analysis] Date range: {start} to {end}, cloud cover < {cloud_cover:.0f}%")
    if progress_callback:
        progress_callback(0, 0, "Searching scene catalogue...")

    scenes = search_scenes(boundary, start, end, cloud_cover, collections)

    latest = None
    latest_lock = threading.Lock()

    def process_scene(scene):
        nonlocal latest
        image = prepare_image(scene, boundary, resolution=resolution, max_pixels=max_pixels)
        record = extract_observation(image, boundary)
        # Pixels are kept for the most recent image only; the rest are dropped here
        with latest_lock:
            if latest is None or (image.timestamp, image.scene_id) > (latest.timestamp, latest.scene_id):
                latest = image
        return record

    records = []
    failed = []
    last_error = None
    for scene, record, error in map_scenes(scenes, process_scene, max_workers, progress_callback):
        if error is not None:
            failed.append(scene.scene_id)
            last_error = error
            continue
        records.append(record)

    if scenes and not records:
        raise SourceAccessError(f"None of the {len(scenes)} scenes could be read: {last_error}") from last_error
    if failed:
        logger.warning(f"[run_lst_analysis] {len(failed)} of {len(scenes)} scenes could not be read")

    records.sort(key=lambda r: (r.date, r.scene_id))
    summary = aggregate_timeseries(records, years=year_span(start, end))
    logger.info(f"[run_lst_analysis] {summary.valid_count} valid observations from {len(scenes)} scenes")

    return LSTAnalysis(
        boundary=boundary,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        cloud_cover=cloud_cover,
        records=records,
        summary=summary,
        latest=clip_to_boundary(latest, boundary) if latest is not None else None,
        scene_count=len(scenes),
        failed_scenes=failed
    )


def analyze_point(
    lat: float,
    lon: float,
    radius_m: float = POINT_BUFFER_M,
    cloud_cover: float = POINT_CLOUD_COVER,
    **kwargs
) -> LSTAnalysis:
    """LST analysis for a point buffered by ``radius_m`` metres."""
    boundary = create_circular_boundary(lat, lon, radius_m)
    logger.info(f"[analyze_point] ({lat:.4f}, {lon:.4f}) with {radius_m:.0f} m buffer")
    return run_lst_analysis(boundary, cloud_cover=cloud_cover, **kwargs)


def analyze_area(
    boundary=None,
    geojson_path: str = None,
    property_name: str = None,
    property_value=None,
    cloud_cover: float = AREA_CLOUD_COVER,
    **kwargs
) -> LSTAnalysis:
    """LST analysis for a polygon, given directly or loaded from a GeoJSON file."""
    if boundary is None:
        boundary = load_boundary_from_geojson(geojson_path, property_name, property_value)
    return run_lst_analysis(boundary, cloud_cover=cloud_cover, **kwargs)


class AnalysisSession:
    """
    Holds the result of the current analysis, at most one area at a time.

    Starting a new analysis clears the previous result immediately; a run
    that finishes after a newer one has started is discarded.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._generation = 0
        self.result: Optional[LSTAnalysis] = None

    def clear(self):
        with self._lock:
            self._generation += 1
            self.result = None

    def _run(self, func, *args, **kwargs) -> Optional[LSTAnalysis]:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.result = None

        result = func(*args, **kwargs)

        with self._lock:
            if generation != self._generation:
                logger.info("[AnalysisSession] Discarding superseded result")
                return None
            self.result = result
        return result

    def analyze_point(self, lat: float, lon: float, **kwargs) -> Optional[LSTAnalysis]:
        return self._run(analyze_point, lat, lon, **kwargs)

    def analyze_area(self, **kwargs) -> Optional[LSTAnalysis]:
        return self._run(analyze_area, **kwargs)
