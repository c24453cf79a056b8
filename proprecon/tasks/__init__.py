"""
PropRecon - Background Tasks Package

Celery background tasks.
"""
