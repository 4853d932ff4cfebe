from .geometry import (
    parse_coordinates,
    create_circular_boundary,
    create_polygon_boundary,
    load_boundary_from_geojson,
    boundary_bounds,
    create_field_mask,
    apply_field_mask,
    compute_field_statistics
)
from .extract import extract_observation
from .aggregate import (
    filter_valid_records,
    summarize,
    monthly_statistics,
    yearly_statistics,
    seasonal_statistics,
    year_span,
    aggregate_timeseries
)
