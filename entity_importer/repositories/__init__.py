from .base_repository import BaseRepository
from .entity_store import EntityStore
from .entry_repository import EntryRepository

__all__ = [
    "BaseRepository",
    "EntityStore",
    "EntryRepository",
]
