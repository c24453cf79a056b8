"""
PropRecon - Monthly reconciliation engine for managed rental properties.
"""

__version__ = "0.1.0"
