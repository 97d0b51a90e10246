"""Guru Technologies ERP: water-purifier sales and service backend."""

__version__ = "1.0.0"
