"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .owners import OwnerRepository

__all__ = ["OwnerRepository"]
