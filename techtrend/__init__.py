"""TechTrend article-list caching core."""

__version__ = "1.0.0"
