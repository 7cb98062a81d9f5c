"""Roofing estimation engine: roof geometry, quick pricing and detailed line-item estimates."""

__version__ = '1.0.0'
