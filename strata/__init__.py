"""Strata — session and permission coordination core."""

__version__ = "0.1.0"
