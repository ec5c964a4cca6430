"""
SaberPro school management: credential authentication and session claims.
"""

__version__ = "0.3.0"
