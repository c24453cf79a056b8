"""
PropRecon - API Routers Package
"""

from proprecon.routers import reconciliations

__all__ = ["reconciliations"]
