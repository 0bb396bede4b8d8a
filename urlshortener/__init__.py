"""URL shortener: content-addressed short urls with asynchronous hit telemetry."""

__version__ = "1.0.0"
