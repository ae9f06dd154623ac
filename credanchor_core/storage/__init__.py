# credanchor_core/storage/__init__.py

from .provider import RecordIndex
from .providers.memory_provider import InMemoryRecordIndex
from .providers.sqlite_provider import SQLiteRecordIndex
from credanchor_core.constants import DEFAULT_DB_PATH
from credanchor_core.errors import ConfigurationError
import os


def load_record_index(config: dict | None = None) -> RecordIndex:
    """
    Factory resolver for selecting the record index backend.

        - sqlite (default)
        - memory
    """
    config = config or {}
    provider = config.get("index_provider") or os.getenv("CREDANCHOR_INDEX_PROVIDER", "sqlite")

    if provider == "memory":
        return InMemoryRecordIndex()

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("CREDANCHOR_DB_PATH", DEFAULT_DB_PATH)
        return SQLiteRecordIndex(db_path)

    raise ConfigurationError(f"Unknown index provider: {provider}")


__all__ = [
    "RecordIndex",
    "InMemoryRecordIndex",
    "SQLiteRecordIndex",
    "load_record_index",
]
