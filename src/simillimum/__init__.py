"""Simillimum: classical homeopathy repertorisation and remedy suggestion."""

__version__ = "0.5.0"
