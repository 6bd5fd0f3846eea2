"""Database management module."""

from .database import DatabaseManager, InsertResult, get_database_path

__all__ = ["DatabaseManager", "InsertResult", "get_database_path"]
