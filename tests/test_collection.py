"""
Tests for the image collection builder (collection.py)

The STAC search and raster reads are patched; scenes are read from
in-memory arrays on the 10x10 test grid.
"""

from datetime import date, datetime

import numpy as np
import pytest

from lst_mon.config import LST_BAND, QA_BAND, THERMAL_BAND
from lst_mon.data import collection
from lst_mon.data.collection import (
    build_collection,
    load_image,
    map_scenes,
    parse_date,
    prepare_image,
    search_scenes,
    validate_date_range
)
from lst_mon.data.stac import BandWindow
from lst_mon.exceptions import InputError, SourceAccessError
from lst_mon.models import SceneResult

CLEAR = 21824  # Landsat clear-land QA value


@pytest.fixture
def fake_reader(grid_transform):
    """
    Patches read_band with lookups into ``arrays[(scene_id, asset)]``.
    Unknown scenes raise SourceAccessError like an unreachable asset.
    """
    arrays = {}
    calls = []

    def _read_band(item, asset_key, bbox_wgs84, dtype="float32", **kwargs):
        calls.append((item["id"], asset_key, kwargs))
        try:
            data = arrays[(item["id"], asset_key)]
        except KeyError:
            raise SourceAccessError(f"Could not read asset '{asset_key}' from {item['id']}")
        return BandWindow(np.asarray(data).astype(dtype), grid_transform, 4326, False)

    return arrays, calls, _read_band


def _scene(make_item, scene_id, dt, collection_id="ls8_st", cloud_cover=10.0):
    item = make_item(scene_id, dt, cloud_cover)
    return SceneResult(date=datetime.fromisoformat(dt.replace("Z", "+00:00")), collection=collection_id, item=item)


# ============================================================
# Dates
# ============================================================

def test_parse_date_variants():
    assert parse_date("2014-01-01") == date(2014, 1, 1)
    assert parse_date(date(2020, 5, 1)) == date(2020, 5, 1)
    assert parse_date(datetime(2020, 5, 1, 12)) == date(2020, 5, 1)


@pytest.mark.parametrize("start,end", [
    ("2024-01-01", "2014-01-01"),
    ("2020-01-01", "2020-01-01"),
    ("2020-13-01", "2021-01-01"),
    ("yesterday", "2021-01-01"),
])
def test_validate_date_range_rejects(start, end):
    with pytest.raises(InputError):
        validate_date_range(start, end)


# ============================================================
# search_scenes
# ============================================================

def test_search_scenes_filters_and_merges(monkeypatch, make_item, unit_square):
    catalogue = {
        "ls8_st": [
            make_item("LC08_B", "2015-06-01T05:00:00Z", 12.0),
            make_item("LC08_CLOUDY", "2015-07-01T05:00:00Z", 30.0),  # not strictly below
            make_item("LC08_NOCC", "2015-08-01T05:00:00Z", None),
            make_item("LC08_LATE", "2024-01-01T00:00:01Z", 5.0),  # end is exclusive
        ],
        "ls9_st": [
            make_item("LC09_A", "2014-03-01T05:00:00Z", 1.0),
            make_item("LC09_C", "2023-12-31T23:59:00Z", 29.9),
        ],
    }
    requests_made = []

    def fake_search(collections, **kwargs):
        requests_made.append((collections, kwargs))
        return catalogue[collections[0]]

    monkeypatch.setattr(collection, "search_stac", fake_search)

    scenes = search_scenes(unit_square, "2014-01-01", "2024-01-01", 30)

    assert [s.scene_id for s in scenes] == ["LC09_A", "LC08_B", "LC09_C"]
    assert [s.collection for s in scenes] == ["ls9_st", "ls8_st", "ls9_st"]
    assert [c for c, _ in requests_made] == [["ls8_st"], ["ls9_st"]]

    kwargs = requests_made[0][1]
    assert kwargs["query"] == {"eo:cloud_cover": {"lt": 30}}
    assert kwargs["datetime"] == "2014-01-01T00:00:00Z/2024-01-01T00:00:00Z"
    assert kwargs["intersects"]["type"] == "Polygon"


def test_search_scenes_is_repeatable(monkeypatch, make_item, unit_square):
    items = [
        make_item("LC08_2", "2016-01-01T05:00:00Z"),
        make_item("LC08_1", "2016-01-01T05:00:00Z"),
        make_item("LC08_0", "2015-01-01T05:00:00Z"),
    ]
    monkeypatch.setattr(collection, "search_stac", lambda collections, **kw: list(reversed(items)))

    first = search_scenes(unit_square, "2014-01-01", "2024-01-01", 30, collections=["ls8_st"])
    second = search_scenes(unit_square, "2014-01-01", "2024-01-01", 30, collections=["ls8_st"])

    assert [s.scene_id for s in first] == ["LC08_0", "LC08_1", "LC08_2"]
    assert [s.scene_id for s in first] == [s.scene_id for s in second]


def test_search_scenes_mixed_datetime_forms(monkeypatch, make_item, unit_square):
    items = [
        make_item("LC08_DATE_ONLY", "2020-03-01"),
        make_item("LC08_ZULU", "2020-02-01T10:00:00Z"),
        make_item("LC08_NAIVE", "2020-02-15T08:00:00"),
    ]
    monkeypatch.setattr(collection, "search_stac", lambda collections, **kw: items)

    scenes = search_scenes(unit_square, "2020-01-01", "2021-01-01", 30, collections=["ls8_st"])

    assert [s.scene_id for s in scenes] == ["LC08_ZULU", "LC08_NAIVE", "LC08_DATE_ONLY"]
    assert all(s.date.tzinfo is not None for s in scenes)


def test_search_scenes_empty(monkeypatch, unit_square):
    monkeypatch.setattr(collection, "search_stac", lambda collections, **kw: [])

    assert search_scenes(unit_square, "2014-01-01", "2024-01-01", 30) == []


def test_search_scenes_bad_dates_do_not_search(monkeypatch, unit_square):
    def fail(*args, **kwargs):
        raise AssertionError("catalogue should not be queried")

    monkeypatch.setattr(collection, "search_stac", fail)

    with pytest.raises(InputError):
        search_scenes(unit_square, "2024-01-01", "2014-01-01", 30)


def test_search_scenes_propagates_source_errors(monkeypatch, unit_square):
    def unreachable(*args, **kwargs):
        raise SourceAccessError("STAC search failed with HTTP 503")

    monkeypatch.setattr(collection, "search_stac", unreachable)

    with pytest.raises(SourceAccessError):
        search_scenes(unit_square, "2014-01-01", "2024-01-01", 30)


# ============================================================
# load_image / prepare_image
# ============================================================

def test_load_image_marks_fill_pixels(monkeypatch, fake_reader, make_item, unit_square):
    arrays, calls, read = fake_reader
    qa = np.full((10, 10), CLEAR)
    qa[0, 0] = 1  # fill bit
    st = np.full((10, 10), 45000)
    st[9, 9] = 0  # thermal nodata
    arrays[("LC08_A", QA_BAND)] = qa
    arrays[("LC08_A", THERMAL_BAND)] = st
    monkeypatch.setattr(collection, "read_band", read)

    image = load_image(_scene(make_item, "LC08_A", "2020-06-15T05:00:00Z"), unit_square, resolution=60)

    assert image.shape == (10, 10)
    assert image.epsg == 4326
    assert image.valid.sum() == 98
    assert not image.valid[0, 0] and not image.valid[9, 9]
    assert image.bands[THERMAL_BAND].dtype == np.float64
    assert image.metadata["cloud_cover"] == 10.0
    # thermal band is read onto the QA grid
    assert calls[0][1] == QA_BAND and calls[0][2]["resolution"] == 60
    assert calls[1][1] == THERMAL_BAND and calls[1][2]["out_shape"] == (10, 10)


def test_prepare_image_masks_clouds_and_derives_lst(monkeypatch, fake_reader, make_item, unit_square):
    arrays, _, read = fake_reader
    qa = np.full((10, 10), CLEAR)
    qa[:2, :] = CLEAR | (1 << 4)
    arrays[("LC09_A", QA_BAND)] = qa
    arrays[("LC09_A", THERMAL_BAND)] = np.full((10, 10), 45000)
    monkeypatch.setattr(collection, "read_band", read)

    image = prepare_image(_scene(make_item, "LC09_A", "2021-02-01T05:00:00Z", "ls9_st"), unit_square)

    lst = image.bands[LST_BAND]
    assert np.isnan(lst[:2, :]).all()
    assert np.allclose(lst[2:, :], 29.6609)
    assert image.collection == "ls9_st"


def test_load_image_missing_asset(monkeypatch, fake_reader, make_item, unit_square):
    _, _, read = fake_reader
    monkeypatch.setattr(collection, "read_band", read)

    with pytest.raises(SourceAccessError):
        load_image(_scene(make_item, "LC08_MISSING", "2020-06-15T05:00:00Z"), unit_square)


# ============================================================
# map_scenes / build_collection
# ============================================================

def test_map_scenes_keeps_order_and_captures_errors(make_item):
    scenes = [_scene(make_item, f"LC08_{i}", f"2020-0{i + 1}-01T05:00:00Z") for i in range(5)]
    progress = []

    def work(scene):
        if scene.scene_id == "LC08_3":
            raise SourceAccessError("unreadable")
        return scene.scene_id.lower()

    outcomes = map_scenes(scenes, work, max_workers=3, progress_callback=lambda *a: progress.append(a))

    assert [s.scene_id for s, _, _ in outcomes] == [s.scene_id for s in scenes]
    assert [r for _, r, _ in outcomes] == ["lc08_0", "lc08_1", "lc08_2", None, "lc08_4"]
    assert isinstance(outcomes[3][2], SourceAccessError)
    assert len(progress) == 5
    assert progress[-1][:2] == (5, 5)


def test_map_scenes_other_errors_propagate(make_item):
    scenes = [_scene(make_item, "LC08_0", "2020-01-01T05:00:00Z")]

    def broken(scene):
        raise ZeroDivisionError()

    with pytest.raises(ZeroDivisionError):
        map_scenes(scenes, broken)


def test_map_scenes_empty():
    assert map_scenes([], lambda s: s) == []


def test_build_collection(monkeypatch, fake_reader, make_item, unit_square):
    arrays, _, read = fake_reader
    for scene_id in ("LC08_A", "LC09_B"):
        arrays[(scene_id, QA_BAND)] = np.full((10, 10), CLEAR)
        arrays[(scene_id, THERMAL_BAND)] = np.full((10, 10), 45000)
    catalogue = {
        "ls8_st": [make_item("LC08_A", "2020-06-15T05:00:00Z"), make_item("LC08_BROKEN", "2020-07-01T05:00:00Z")],
        "ls9_st": [make_item("LC09_B", "2022-06-15T05:00:00Z")],
    }
    monkeypatch.setattr(collection, "search_stac", lambda collections, **kw: catalogue[collections[0]])
    monkeypatch.setattr(collection, "read_band", read)

    images = build_collection(unit_square, "2014-01-01", "2024-01-01", 30, max_workers=2)
    again = build_collection(unit_square, "2014-01-01", "2024-01-01", 30, max_workers=2)

    assert [i.scene_id for i in images] == ["LC08_A", "LC09_B"]
    assert [i.scene_id for i in again] == ["LC08_A", "LC09_B"]
    assert all(LST_BAND in i.bands for i in images)
