import numpy as np

from ..config import THERMAL_BAND, LST_BAND, ST_SCALE, ST_OFFSET, KELVIN_OFFSET
from ..models import RasterImage


def dn_to_celsius(st_dn):
    """
    Converts Collection 2 ST_B10 digital numbers to degrees Celsius.

    Kelvin = DN * 0.00341802 + 149.0, then subtract 273.15.
    """
    return (np.asarray(st_dn, dtype=np.float64) * ST_SCALE + ST_OFFSET) - KELVIN_OFFSET


def derive_lst(image: RasterImage, thermal_band: str = THERMAL_BAND) -> RasterImage:
    """
    Appends an ``LST`` band (Celsius) computed from the raw thermal band.

    Invalid pixels are NaN in the new band. The raw band is kept.
    """
    if thermal_band not in image.bands:
        raise KeyError(f"Image {image.scene_id} has no '{thermal_band}' band")

    lst_celsius = np.where(image.valid, dn_to_celsius(image.bands[thermal_band]), np.nan)
    bands = dict(image.bands)
    bands[LST_BAND] = lst_celsius
    return image._replace(bands=bands)
