"""Weather Aggregator: merge forecasts from multiple weather providers."""

__version__ = "0.1.0"
