from app.platform.store import BaseRepository, atomic

__all__ = ["BaseRepository", "atomic"]
