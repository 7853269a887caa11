"""Storage layer - Firestore and in-memory implementations."""

from chatly.storage.base import StorageBackend
from chatly.storage.firestore import FirestoreStorage
from chatly.storage.memory import InMemoryStorage

__all__ = ["StorageBackend", "FirestoreStorage", "InMemoryStorage"]
