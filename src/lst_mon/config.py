import os

# Configuration
STAC_URL = os.environ.get("LST_MON_STAC_URL", "https://explorer.digitalearth.africa/stac/search")
STAC_PAGE_SIZE = 100
STAC_TIMEOUT = 60
STAC_MAX_PAGES = 100

# Landsat 8 and 9 Collection 2 Level-2 surface temperature products
LANDSAT_COLLECTIONS = ("ls8_st", "ls9_st")
THERMAL_BAND = "ST_B10"
QA_BAND = "QA_PIXEL"
LST_BAND = "LST"
THERMAL_NODATA = 0

# USGS Collection 2 ST scaling: Kelvin = DN * 0.00341802 + 149.0
ST_SCALE = 0.00341802
ST_OFFSET = 149.0
KELVIN_OFFSET = 273.15

# QA_PIXEL bit positions
QA_FILL_BIT = 0
QA_CIRRUS_BIT = 2
QA_CLOUD_SHADOW_BIT = 3
QA_CLOUD_BIT = 4

# Analysis defaults
DEFAULT_START_DATE = "2014-01-01"
DEFAULT_END_DATE = "2024-01-01"
AREA_CLOUD_COVER = 30.0
POINT_CLOUD_COVER = 20.0
POINT_BUFFER_M = 100.0
SCALE_M = 30.0

# Per-read pixel budget; larger windows are downsampled (best effort)
MAX_PIXELS = 5_000_000
MAX_DIM = 4096

MAX_WORKERS = int(os.environ.get("LST_MON_MAX_WORKERS", "8"))

SEASONS = (
    ("Winter", (12, 1, 2)),
    ("Spring", (3, 4, 5)),
    ("Monsoon", (6, 7, 8)),
    ("Post-Monsoon", (9, 10, 11)),
)

def setup_environment():
    """Sets up AWS/GDAL environment variables for public bucket access."""
    os.environ.setdefault('AWS_NO_SIGN_REQUEST', 'YES')
    os.environ.setdefault('AWS_REGION', 'af-south-1')
    os.environ.setdefault('AWS_S3_ENDPOINT', 's3.af-south-1.amazonaws.com')
    os.environ.setdefault('GDAL_DISABLE_READDIR_ON_OPEN', 'EMPTY_DIR')
    os.environ.setdefault('GDAL_HTTP_MAX_RETRY', '3')
