"""
Data access module for lst_mon.

This module provides functions for:
- STAC API queries and windowed raster reads (stac.py)
- Landsat 8/9 LST image collections (collection.py)
- Delimited-text exports (export.py)
"""

from .stac import search_stac, read_band, parse_item_datetime, BandWindow
from .collection import (
    parse_date,
    validate_date_range,
    search_scenes,
    load_image,
    prepare_image,
    map_scenes,
    build_collection
)
from .export import (
    TIMESERIES_COLUMNS,
    export_timeseries,
    export_monthly,
    export_yearly,
    export_analysis,
    read_timeseries
)

__all__ = [
    # stac
    'search_stac',
    'read_band',
    'parse_item_datetime',
    'BandWindow',
    # collection
    'parse_date',
    'validate_date_range',
    'search_scenes',
    'load_image',
    'prepare_image',
    'map_scenes',
    'build_collection',
    # export
    'TIMESERIES_COLUMNS',
    'export_timeseries',
    'export_monthly',
    'export_yearly',
    'export_analysis',
    'read_timeseries',
]
