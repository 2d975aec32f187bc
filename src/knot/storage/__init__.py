"""Storage contract and its in-memory and file-backed implementations."""

from .file_repo import FileRepository
from .interfaces import Repository
from .memory import InMemoryRepository
from .rwlock import ReadWriteLock

__all__ = ["FileRepository", "InMemoryRepository", "ReadWriteLock", "Repository"]
