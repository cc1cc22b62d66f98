"""IT cost calculation and approval service."""

__version__ = "1.0.0"
