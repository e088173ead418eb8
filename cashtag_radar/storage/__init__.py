"""Storage backends."""

from cashtag_radar.storage.base_repository import BaseRepository
from cashtag_radar.storage.memory_repository import MemoryRepository
from cashtag_radar.storage.postgres_repository import PostgresRepository

__all__ = ["BaseRepository", "MemoryRepository", "PostgresRepository"]
