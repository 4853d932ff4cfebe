"""
Land Surface Temperature analysis - command line entry point.

Point mode buffers a lat/lon by a fixed radius; area mode loads a polygon
from a GeoJSON file (optionally filtered by a feature property).
"""

import argparse
import logging
import sys

from .analysis.geometry import parse_coordinates
from .config import (
    AREA_CLOUD_COVER, DEFAULT_END_DATE, DEFAULT_START_DATE, MAX_WORKERS,
    POINT_BUFFER_M, POINT_CLOUD_COVER, SCALE_M, setup_environment
)
from .data.export import export_analysis
from .exceptions import InputError, SourceAccessError
from .pipeline import AnalysisSession
from .visualization.reports import generate_lst_report


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Land Surface Temperature time-series analysis (Landsat 8/9)')
    parser.add_argument('--point', type=str,
                        help='Point as "lat, lon" (point mode)')
    parser.add_argument('--radius', type=float, default=POINT_BUFFER_M,
                        help='Point buffer radius in meters')
    parser.add_argument('--geojson', type=str,
                        help='GeoJSON file with the area of interest (area mode)')
    parser.add_argument('--property', dest='property_name', type=str,
                        help='Feature property used to select the area')
    parser.add_argument('--value', dest='property_value', type=str,
                        help='Value of --property to select')
    parser.add_argument('--start', type=str, default=DEFAULT_START_DATE,
                        help='Start date, inclusive (YYYY-MM-DD)')
    parser.add_argument('--end', type=str, default=DEFAULT_END_DATE,
                        help='End date, exclusive (YYYY-MM-DD)')
    parser.add_argument('--cloud-cover', type=float,
                        help=f'Max scene cloud cover %% (default {POINT_CLOUD_COVER:.0f} point / {AREA_CLOUD_COVER:.0f} area)')
    parser.add_argument('--scale', type=float, default=SCALE_M,
                        help='Sampling resolution in meters')
    parser.add_argument('--workers', type=int, default=MAX_WORKERS,
                        help='Concurrent scene workers')
    parser.add_argument('--export-dir', type=str,
                        help='Write time series, monthly and yearly tables here')
    parser.add_argument('--verbose', action='store_true',
                        help='Debug logging')
    return parser.parse_args(argv)


def get_point_input():
    """Ask for a point interactively."""
    print(f"\n{'='*50}")
    print("LST POINT ANALYSIS")
    print(f"{'='*50}\n")
    print("Enter position as: lat, lon")
    print("Example: 12.9716, 77.5946")
    return input("\nPosition: ").strip()


def main(argv=None):
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    setup_environment()

    session = AnalysisSession()
    options = dict(
        start_date=args.start,
        end_date=args.end,
        resolution=args.scale,
        max_workers=args.workers,
    )

    try:
        if args.geojson:
            cloud_cover = args.cloud_cover if args.cloud_cover is not None else AREA_CLOUD_COVER
            print(f"Analyzing area from {args.geojson}...")
            result = session.analyze_area(
                geojson_path=args.geojson,
                property_name=args.property_name,
                property_value=args.property_value,
                cloud_cover=cloud_cover,
                **options
            )
        else:
            lat, lon = parse_coordinates(args.point if args.point else get_point_input())
            cloud_cover = args.cloud_cover if args.cloud_cover is not None else POINT_CLOUD_COVER
            print(f"Analyzing LST at coordinates: {lat:.4f}, {lon:.4f}")
            print("Processing... Please wait...")
            result = session.analyze_point(lat, lon, radius_m=args.radius, cloud_cover=cloud_cover, **options)
    except InputError as e:
        print(f"Input error: {e}")
        return 2
    except SourceAccessError as e:
        print(f"Imagery source error: {e}")
        return 1

    generate_lst_report(result)

    if args.export_dir:
        paths = export_analysis(result, args.export_dir)
        for name, path in paths.items():
            print(f"Exported {name}: {path}")

    print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
