"""Upload gate for content-addressed storage, backed by time-locked payments."""

__version__ = "0.1.0"
