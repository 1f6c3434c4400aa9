"""
Request stores for the delegate relayer.
"""
from .base import RequestStore, UPDATABLE_FIELDS
from .json_store import JsonRequestStore
from .memory_store import MemoryRequestStore

__all__ = ['RequestStore', 'UPDATABLE_FIELDS', 'JsonRequestStore', 'MemoryRequestStore']
