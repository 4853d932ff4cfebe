"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- A 10x10 WGS84 pixel grid over the unit square
- Sample boundaries
- RasterImage and STAC item factories
"""
from datetime import datetime, timezone

import numpy as np
import pytest
from rasterio.transform import from_bounds

from lst_mon.config import QA_BAND, THERMAL_BAND
from lst_mon.models import RasterImage


# ============================================================
# Grid & Boundary Fixtures
# ============================================================

GRID_SHAPE = (10, 10)


@pytest.fixture
def grid_transform():
    """10x10 pixels covering lon 0..1, lat 0..1."""
    return from_bounds(0.0, 0.0, 1.0, 1.0, GRID_SHAPE[1], GRID_SHAPE[0])


@pytest.fixture
def unit_square():
    """Boundary covering the whole grid."""
    return {
        "type": "Polygon",
        "coordinates": [[(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.0, 0.0)]]
    }


@pytest.fixture
def west_half():
    """Boundary covering the western five pixel columns."""
    return {
        "type": "Polygon",
        "coordinates": [[(0.0, 0.0), (0.5, 0.0), (0.5, 1.0), (0.0, 1.0), (0.0, 0.0)]]
    }


# ============================================================
# Factories
# ============================================================

@pytest.fixture
def make_image(grid_transform):
    """Factory for RasterImage objects on the test grid."""
    def _make(st=None, qa=None, valid=None, timestamp=None, scene_id="LC08_TEST", extra_bands=None):
        st = np.full(GRID_SHAPE, 45000.0) if st is None else np.asarray(st, dtype=np.float64)
        qa = np.full(GRID_SHAPE, 21824, dtype=np.uint16) if qa is None else np.asarray(qa, dtype=np.uint16)
        valid = np.ones(GRID_SHAPE, dtype=bool) if valid is None else np.asarray(valid, dtype=bool)
        bands = {QA_BAND: qa, THERMAL_BAND: st}
        bands.update(extra_bands or {})
        return RasterImage(
            scene_id=scene_id,
            collection="ls8_st",
            timestamp=timestamp or datetime(2020, 6, 15, 5, 0, tzinfo=timezone.utc),
            bands=bands,
            valid=valid,
            transform=grid_transform,
            epsg=4326,
            metadata={"cloud_cover": 5.0, "downsampled": False}
        )
    return _make


@pytest.fixture
def make_item():
    """Factory for STAC item dicts."""
    def _make(scene_id, dt, cloud_cover=10.0):
        props = {"datetime": dt}
        if cloud_cover is not None:
            props["eo:cloud_cover"] = cloud_cover
        return {
            "id": scene_id,
            "properties": props,
            "assets": {
                QA_BAND: {"href": f"https://example.com/{scene_id}_QA_PIXEL.tif"},
                THERMAL_BAND: {"href": f"https://example.com/{scene_id}_ST_B10.tif"},
            }
        }
    return _make
