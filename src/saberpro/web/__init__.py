"""
HTTP surface for SaberPro authentication.
"""

from .auth_api import create_app, main

__all__ = ["create_app", "main"]
