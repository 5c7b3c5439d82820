"""HTTP API for lesson categories, lessons, image uploads and lesson exports."""

__version__ = "0.1.0"