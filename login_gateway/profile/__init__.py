"""
Profile Package

Endpoints reading and updating the user's profile image.
"""

from .routes import profile_router

__all__ = ["profile_router"]
