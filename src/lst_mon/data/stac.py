import logging
import math
from collections import namedtuple
from datetime import datetime, timezone

import rasterio
import requests
from rasterio.enums import Resampling
from rasterio.errors import RasterioError
from rasterio.transform import Affine
from rasterio.warp import transform_bounds
from rasterio.windows import from_bounds

from ..config import STAC_URL, STAC_PAGE_SIZE, STAC_TIMEOUT, STAC_MAX_PAGES, MAX_PIXELS, MAX_DIM
from ..exceptions import SourceAccessError

logger = logging.getLogger(__name__)

# Pixels read for one asset, with the grid they sit on
BandWindow = namedtuple('BandWindow', ['data', 'transform', 'epsg', 'downsampled'])


def search_stac(collections, intersects=None, bbox=None, datetime=None, query=None,
                sortby=None, limit=STAC_PAGE_SIZE, max_pages=STAC_MAX_PAGES, url=None):
    """
    Search a STAC API and return every matching feature, following ``next`` links.

    Raises:
        SourceAccessError: if the catalogue cannot be reached or answers with an error.
    """
    url = url or STAC_URL
    payload = {
        "collections": list(collections),
        "limit": limit
    }
    if intersects is not None:
        payload["intersects"] = intersects
    if bbox is not None:
        payload["bbox"] = list(bbox)
    if datetime:
        payload["datetime"] = datetime
    if query:
        payload["query"] = query
    if sortby:
        payload["sortby"] = sortby

    features = []
    method = "POST"
    params = None
    page = 1
    while True:
        page_json = _request_page(url, method, payload, params)
        items = page_json.get("features", [])
        features.extend(items)

        next_link = _next_link(page_json)
        if not items or next_link is None:
            break

        page += 1
        if page > max_pages:
            logger.warning(f"[search_stac] Hit page limit ({max_pages} pages)")
            break

        url = next_link["href"]
        method = next_link.get("method", "GET").upper()
        if method == "POST":
            body = next_link.get("body") or {}
            payload = {**payload, **body} if next_link.get("merge", False) else (body or payload)
            params = None
        else:
            payload = None

    logger.debug(f"[search_stac] {len(features)} features from {page} page(s) of {list(collections)}")
    return features


def _request_page(url, method, payload, params):
    try:
        if method == "POST":
            response = requests.post(url, json=payload, timeout=STAC_TIMEOUT)
        else:
            response = requests.get(url, params=params, timeout=STAC_TIMEOUT)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.Timeout as e:
        raise SourceAccessError(f"STAC search timed out after {STAC_TIMEOUT}s ({url})") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "unknown"
        raise SourceAccessError(f"STAC search failed with HTTP {status} ({url})") from e
    except requests.exceptions.RequestException as e:
        raise SourceAccessError(f"STAC search request error: {e}") from e
    except ValueError as e:
        raise SourceAccessError(f"STAC search returned invalid JSON ({url})") from e


def _next_link(page_json):
    for link in page_json.get("links", []):
        if link.get("rel") == "next" and link.get("href"):
            return link
    return None


def parse_item_datetime(item) -> datetime:
    """Parses the acquisition time of a STAC item (dict) as a UTC-aware datetime.

    Date-only values and timestamps without an offset are taken as UTC.
    """
    date_str = item['properties']['datetime']
    if 'T' in date_str:
        parsed = datetime.fromisoformat(date_str.replace('Z', '+00:00'))
    else:
        parsed = datetime.strptime(date_str, '%Y-%m-%d')
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def read_band(
    item,
    asset_key,
    bbox_wgs84,
    dtype="float32",
    out_shape=None,
    resolution=None,
    max_pixels=MAX_PIXELS,
    max_dim=MAX_DIM,
    resampling=Resampling.nearest,
    fill_value=0,
) -> BandWindow:
    """Reads a specific band from a STAC item (dict) within a bounding box.

    Windows larger than the pixel budget are downsampled instead of failing;
    the returned ``downsampled`` flag reports it.

    Args:
        item: STAC item dict
        asset_key: asset key to read (e.g., "ST_B10")
        bbox_wgs84: [min_lon, min_lat, max_lon, max_lat]
        dtype: numpy dtype for output array
        out_shape: optional (rows, cols) to resample to
        resolution: target pixel size in metres (projected assets only)
        max_pixels: soft cap for total pixels when out_shape is None
        max_dim: soft cap for max(rows, cols) when out_shape is None
        resampling: rasterio resampling method (nearest keeps QA flags intact)
        fill_value: value for pixels outside the asset footprint

    Raises:
        SourceAccessError: if the asset is missing or cannot be opened/read.
    """
    try:
        href = item['assets'][asset_key]['href']
    except KeyError as e:
        item_id = item.get('id', 'unknown')
        raise SourceAccessError(f"Asset '{asset_key}' not found in scene {item_id}") from e

    try:
        with rasterio.open(href) as src:
            bbox_native = transform_bounds("EPSG:4326", src.crs, *bbox_wgs84)
            window = from_bounds(*bbox_native, src.transform)
            w = max(1, int(math.ceil(window.width)))
            h = max(1, int(math.ceil(window.height)))

            downsampled = False
            target_shape = out_shape
            if target_shape is None:
                if resolution and src.crs is not None and src.crs.is_projected:
                    native_res = abs(src.res[0])
                    w = max(1, int(math.ceil(window.width * native_res / resolution)))
                    h = max(1, int(math.ceil(window.height * native_res / resolution)))

                scale = 1.0
                # Cap by max_dim first
                if max_dim and max(w, h) > max_dim:
                    scale = min(max_dim / float(w), max_dim / float(h))
                # Cap by max_pixels as well
                if max_pixels and (w * h) > max_pixels:
                    scale = min(scale, (max_pixels / float(w * h)) ** 0.5)

                if scale < 1.0:
                    th = max(1, int(h * scale))
                    tw = max(1, int(w * scale))
                    logger.warning(f"[read_band] Large window {h}x{w}; downsampling to {th}x{tw} (best effort).")
                    h, w = th, tw
                    downsampled = True
                target_shape = (h, w)

            data = src.read(
                1,
                window=window,
                out_shape=target_shape,
                resampling=resampling,
                boundless=True,
                fill_value=fill_value,
            )

            transform = src.window_transform(window) @ Affine.scale(
                window.width / target_shape[1],
                window.height / target_shape[0]
            )
            epsg = src.crs.to_epsg() if src.crs is not None else None
    except RasterioError as e:
        raise SourceAccessError(f"Could not read asset '{asset_key}' from {href}: {e}") from e

    return BandWindow(data.astype(dtype), transform, epsg, downsampled)
