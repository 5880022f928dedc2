"""Desktop monitor for Trae account usage and activity."""

__version__ = "0.1.0"
