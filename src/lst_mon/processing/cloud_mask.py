import numpy as np

from ..config import QA_BAND, QA_CIRRUS_BIT, QA_CLOUD_SHADOW_BIT, QA_CLOUD_BIT
from ..models import RasterImage

CLOUD_FLAGS = (1 << QA_CLOUD_SHADOW_BIT) | (1 << QA_CLOUD_BIT) | (1 << QA_CIRRUS_BIT)


def qa_cloud_mask(qa: np.ndarray) -> np.ndarray:
    """
    Clear-sky mask from a Landsat Collection 2 QA_PIXEL array.

    Returns True where none of the cloud-shadow (bit 3), cloud (bit 4)
    or cirrus (bit 2) flags are set.
    """
    flags = np.asarray(qa).astype(np.int64)
    return (flags & CLOUD_FLAGS) == 0


def mask_clouds(image: RasterImage, qa_band: str = QA_BAND) -> RasterImage:
    """
    Intersects the image's pixel validity with the QA cloud mask.

    Bands are returned unchanged; a fully cloudy scene simply comes back
    with no valid pixel.
    """
    if qa_band not in image.bands:
        raise KeyError(f"Image {image.scene_id} has no '{qa_band}' band")

    clear = qa_cloud_mask(image.bands[qa_band])
    return image._replace(valid=image.valid & clear)
