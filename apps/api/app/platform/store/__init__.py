from app.platform.store.repository import BaseRepository
from app.platform.store.transaction import atomic

__all__ = ["BaseRepository", "atomic"]
