"""
Shared helpers for the backend apps.
"""
