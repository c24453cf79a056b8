"""
PropRecon - Utilities Package
"""
