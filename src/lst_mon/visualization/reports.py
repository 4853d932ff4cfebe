import numpy as np


def _fmt(value, width=8, precision=2):
    if value is None:
        return f"{'N/A':>{width}}"
    return f"{value:>{width}.{precision}f}"


def print_group_table(title, rows):
    """Prints one bucket table (monthly, yearly or seasonal)."""
    print(f"\n--- {title} ---")
    print(f"{'Group':<28} | {'Count':>5} | {'Mean':>8} | {'Min':>8} | {'Max':>8}")
    print("-" * 68)
    for row in rows:
        print(f"{row.label:<28} | {row.count:>5} | {_fmt(row.mean)} | {_fmt(row.min)} | {_fmt(row.max)}")


def print_records(records, limit=50):
    """Prints the first ``limit`` time-series records."""
    print(f"\n--- LST TIME SERIES (first {min(limit, len(records))} of {len(records)}) ---")
    print(f"{'Date':<12} | {'Mean (°C)':>9} | {'Std':>6} | {'Pixels':>6} | {'DOY':>3}")
    print("-" * 50)
    for r in records[:limit]:
        print(f"{r.date:<12} | {_fmt(r.lst_mean, 9)} | {_fmt(r.lst_std, 6)} | {r.lst_count:>6} | {r.day_of_year:>3}")


def generate_lst_report(result, max_records=50):
    """
    Generates a console report for an LST analysis.

    Args:
        result (LSTAnalysis): Output of run_lst_analysis / analyze_point / analyze_area.
        max_records (int): Number of time-series rows to list.
    """
    overall = result.summary.overall
    props = result.boundary.get("properties", {})

    print("\n" + "="*60)
    print("LAND SURFACE TEMPERATURE REPORT")
    print("="*60 + "\n")

    print("--- AREA & PERIOD ---")
    if "radius_m" in props:
        print(f"Point        : {props['center_lat']:.4f}, {props['center_lon']:.4f} ({props['radius_m']:.0f} m buffer)")
    if "area_ha" in props:
        print(f"Area         : {props['area_ha']:.2f} ha")
    print(f"Period       : {result.start_date} to {result.end_date} (end exclusive)")
    print(f"Cloud cover  : < {result.cloud_cover:.0f}% per scene")
    print(f"Images found : {result.scene_count}")
    if result.failed_scenes:
        print(f"Unreadable   : {len(result.failed_scenes)} scene(s)")

    print("\n--- LST STATISTICS (°C) ---")
    print(f"Count   : {overall.count}")
    print(f"Mean    : {_fmt(overall.mean, 0)}")
    print(f"Min     : {_fmt(overall.min, 0)}")
    print(f"Max     : {_fmt(overall.max, 0)}")
    print(f"Std Dev : {_fmt(overall.std, 0)}")
    print(f"Median  : {_fmt(overall.median, 0)}")

    if result.records:
        print_records(result.records, max_records)

    print_group_table("YEARLY AVERAGE LST", result.summary.yearly)
    print_group_table("MONTHLY AVERAGE LST", result.summary.monthly)
    print_group_table("SEASONAL AVERAGE LST", result.summary.seasonal)

    latest = result.latest
    if latest is not None:
        lst = latest.bands.get("LST")
        with np.errstate(all="ignore"):
            latest_mean = float(np.nanmean(lst)) if lst is not None and np.any(~np.isnan(lst)) else None
        print("\n--- MOST RECENT IMAGE ---")
        print(f"Scene : {latest.scene_id} ({latest.timestamp.date().isoformat()})")
        print(f"LST   : {_fmt(latest_mean, 0)} °C over the area")

    print("\n" + "="*60 + "\n")
