"""Little Wonder content service: API, generation and backfill jobs."""

__version__ = "0.1.0"
