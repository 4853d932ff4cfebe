"""Land Surface Temperature time series from Landsat 8/9 surface temperature imagery."""

__version__ = "0.1.0"
