"""Alias metadata storage backends."""

from .base import StorageProvider
from .files import FilesStorage
from .s3 import S3Storage
from .sqlite import SqliteStorage

__all__ = ["FilesStorage", "S3Storage", "SqliteStorage", "StorageProvider"]
