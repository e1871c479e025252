"""
Storage Package

Persistence for user rows (id, provider, profile image).
"""

from .users import StoreError, UserRecord, UserStore

__all__ = [
    "StoreError",
    "UserRecord",
    "UserStore",
]
