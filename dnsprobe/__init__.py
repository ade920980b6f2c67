"""Empirical probing of runtime DNS cache lifetime configuration."""

__version__ = "0.3.0"
