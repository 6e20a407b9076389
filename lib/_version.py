"""Version information, kept free of heavy imports so packaging can read it."""

__version__ = "1.0.0"
__version_date__ = "2026-10-18"
