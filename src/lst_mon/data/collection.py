"""
Image collection builder for Landsat 8/9 surface temperature.

Each source collection is searched independently (geometry, date range,
scene cloud cover), every scene is read over the area of interest, cloud
masked and converted to LST, and the two sources are merged.
"""

import concurrent.futures
import logging
from datetime import date, datetime
from typing import Callable, List, Sequence

import numpy as np

from .stac import search_stac, read_band, parse_item_datetime
from ..analysis.geometry import boundary_bounds, boundary_to_geojson
from ..config import (
    LANDSAT_COLLECTIONS, QA_BAND, THERMAL_BAND, THERMAL_NODATA, QA_FILL_BIT,
    SCALE_M, MAX_PIXELS, MAX_WORKERS
)
from ..exceptions import InputError, SourceAccessError
from ..models import RasterImage, SceneResult
from ..processing.cloud_mask import mask_clouds
from ..processing.thermal import derive_lst

logger = logging.getLogger(__name__)


def parse_date(value) -> date:
    """
    Accepts a date, datetime or 'YYYY-MM-DD' string.

    Raises:
        InputError: for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise InputError(f"Invalid date {value!r}; expected YYYY-MM-DD") from e


def validate_date_range(start_date, end_date) -> tuple:
    """Parses both ends of [start_date, end_date) and checks their order."""
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start >= end:
        raise InputError(f"Start date {start} must be before end date {end}")
    return start, end


def search_scenes(
    boundary: dict,
    start_date,
    end_date,
    cloud_cover: float,
    collections: Sequence[str] = LANDSAT_COLLECTIONS
) -> List[SceneResult]:
    """
    Finds the scenes of every source collection that intersect the boundary,
    were acquired in [start_date, end_date) and report less cloud cover than
    ``cloud_cover`` percent.

    Sources are queried one by one and merged without de-duplication.
    The result is sorted by acquisition time (then id) so repeated calls
    against the same catalogue return the same list.

    Raises:
        InputError: bad date range or boundary.
        SourceAccessError: if the catalogue cannot be searched.
    """
    start, end = validate_date_range(start_date, end_date)
    geometry = boundary_to_geojson(boundary)

    results = []
    for collection in collections:
        items = search_stac(
            collections=[collection],
            intersects=geometry,
            datetime=f"{start.isoformat()}T00:00:00Z/{end.isoformat()}T00:00:00Z",
            query={"eo:cloud_cover": {"lt": cloud_cover}},
            sortby=[{"field": "datetime", "direction": "asc"}]
        )

        kept = 0
        for item in items:
            try:
                scene_date = parse_item_datetime(item)
            except (KeyError, ValueError) as e:
                logger.warning(f"[search_scenes] Skipping item with invalid date: {e}")
                continue

            scene_cloud = item.get('properties', {}).get('eo:cloud_cover')
            if scene_cloud is None or scene_cloud >= cloud_cover:
                continue
            if not (start <= scene_date.date() < end):
                continue

            results.append(SceneResult(date=scene_date, collection=collection, item=item))
            kept += 1

        logger.info(f"[search_scenes] {collection}: {kept} scenes below {cloud_cover:.0f}% cloud")

    results.sort(key=lambda s: (s.date, s.scene_id))
    logger.info(f"[search_scenes] Found {len(results)} scenes from {start} to {end}")
    return results


def load_image(
    scene: SceneResult,
    boundary: dict,
    resolution: float = SCALE_M,
    max_pixels: int = MAX_PIXELS
) -> RasterImage:
    """
    Reads the QA and thermal bands of one scene over the boundary's bounding box.

    Both bands share the QA grid. Fill pixels (QA fill bit, or thermal DN
    equal to the nodata value) start out invalid.

    Raises:
        SourceAccessError: if an asset is missing or unreadable.
    """
    bbox = boundary_bounds(boundary)
    qa = read_band(scene.item, QA_BAND, bbox, dtype="uint16",
                   resolution=resolution, max_pixels=max_pixels)
    st = read_band(scene.item, THERMAL_BAND, bbox, dtype="float64",
                   out_shape=qa.data.shape, fill_value=THERMAL_NODATA)

    fill = (qa.data.astype(np.int64) & (1 << QA_FILL_BIT)) != 0
    valid = ~fill & (st.data != THERMAL_NODATA)

    return RasterImage(
        scene_id=scene.scene_id,
        collection=scene.collection,
        timestamp=scene.date,
        bands={QA_BAND: qa.data, THERMAL_BAND: st.data},
        valid=valid,
        transform=qa.transform,
        epsg=qa.epsg,
        metadata={
            "cloud_cover": scene.cloud_cover,
            "downsampled": bool(qa.downsampled),
        }
    )


def prepare_image(
    scene: SceneResult,
    boundary: dict,
    resolution: float = SCALE_M,
    max_pixels: int = MAX_PIXELS
) -> RasterImage:
    """Load -> cloud mask -> LST derivation for one scene."""
    image = load_image(scene, boundary, resolution=resolution, max_pixels=max_pixels)
    return derive_lst(mask_clouds(image))


def map_scenes(
    scenes: Sequence[SceneResult],
    func: Callable[[SceneResult], object],
    max_workers: int = MAX_WORKERS,
    progress_callback: Callable[[int, int, str], None] = None
) -> list:
    """
    Runs ``func`` over every scene on a thread pool.

    Returns a list of ``(scene, result, error)`` tuples in scene order; a
    scene whose call raised carries the exception instead of a result.
    """
    total = len(scenes)
    if total == 0:
        return []

    outcomes = [None] * total
    done = 0
    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, min(max_workers, total))) as ex:
        futures = {ex.submit(func, scene): idx for idx, scene in enumerate(scenes)}
        for fut in concurrent.futures.as_completed(futures):
            idx = futures[fut]
            scene = scenes[idx]
            try:
                outcomes[idx] = (scene, fut.result(), None)
            except SourceAccessError as e:
                logger.warning(f"[map_scenes] Scene {scene.scene_id} failed: {e}")
                outcomes[idx] = (scene, None, e)
            done += 1
            if progress_callback:
                progress_callback(done, total, f"Processed scene {done}/{total}")
    return outcomes


def build_collection(
    boundary: dict,
    start_date,
    end_date,
    cloud_cover: float,
    collections: Sequence[str] = LANDSAT_COLLECTIONS,
    resolution: float = SCALE_M,
    max_pixels: int = MAX_PIXELS,
    max_workers: int = MAX_WORKERS
) -> List[RasterImage]:
    """
    Searches both sources and returns every scene as a processed RasterImage
    (cloud masked, with an ``LST`` band). Scenes that cannot be read are
    logged and left out; no scene at all is an empty list.

    Standalone builder for callers that want the processed images
    themselves. It holds every image in memory at once; ``run_lst_analysis``
    instead streams scenes through ``map_scenes`` and keeps only records.
    """
    scenes = search_scenes(boundary, start_date, end_date, cloud_cover, collections)
    outcomes = map_scenes(
        scenes,
        lambda scene: prepare_image(scene, boundary, resolution=resolution, max_pixels=max_pixels),
        max_workers=max_workers
    )
    return [image for _, image, error in outcomes if error is None]
