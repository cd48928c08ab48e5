"""Bulk CSV stock update for the PIPR distribution-center dashboard."""

__version__ = "0.1.0"
