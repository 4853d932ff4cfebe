import logging

import numpy as np

from ..config import LST_BAND
from ..models import ObservationRecord, RasterImage
from .geometry import create_field_mask, compute_field_statistics

logger = logging.getLogger(__name__)


def extract_observation(
    image: RasterImage,
    boundary: dict,
    band: str = LST_BAND,
    all_touched: bool = False
) -> ObservationRecord:
    """
    Aggregates one processed image over the area of interest.

    Only pixels that are inside the boundary and valid (not masked) count.
    An image without any such pixel yields a record whose mean is None.

    Args:
        image: RasterImage that already carries the LST band.
        boundary: GeoJSON-like geometry dict (WGS84).
        band: Band to aggregate.
        all_touched: Rasterise with every touched pixel instead of pixel centres.

    Returns:
        ObservationRecord with the acquisition date decomposed for grouping.
    """
    if band not in image.bands:
        raise KeyError(f"Image {image.scene_id} has no '{band}' band")

    region = create_field_mask(
        boundary,
        image.shape,
        transform=image.transform,
        epsg=image.epsg,
        all_touched=all_touched
    )
    values = np.where(image.valid, image.bands[band], np.nan)
    stats = compute_field_statistics(values, region)

    if stats["mean"] is None:
        logger.debug(f"[extract_observation] No valid pixels for {image.scene_id}")
    if image.metadata.get("downsampled"):
        logger.info(f"[extract_observation] {image.scene_id} aggregated on a downsampled grid (partial detail)")

    ts = image.timestamp
    return ObservationRecord(
        date=ts.date().isoformat(),
        lst_mean=stats["mean"],
        lst_std=stats["std"],
        lst_count=stats["count"],
        year=ts.year,
        month=ts.month,
        day=ts.day,
        day_of_year=ts.timetuple().tm_yday,
        scene_id=image.scene_id
    )
