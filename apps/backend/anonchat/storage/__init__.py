from anonchat.config import Settings
from anonchat.storage.base import StoragePort
from anonchat.storage.memory import MemoryStorage
from anonchat.storage.sql import SqlStorage


def build_storage(settings: Settings) -> StoragePort:
    if settings.STORAGE_BACKEND == "sql":
        return SqlStorage(settings.DATABASE_URL)
    return MemoryStorage()


__all__ = ["StoragePort", "MemoryStorage", "SqlStorage", "build_storage"]
