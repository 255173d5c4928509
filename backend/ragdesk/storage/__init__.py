"""Index storage backends (local files or Qdrant)."""

from .base import IndexStore, LoadedIndex
from .factory import make_index_store
from .local import LocalIndexStore
from .lock import IndexLock

__all__ = [
    "IndexStore",
    "LoadedIndex",
    "LocalIndexStore",
    "IndexLock",
    "make_index_store",
]
