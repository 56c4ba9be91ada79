"""Cache Module - Caching services."""
from core.cache.record_cache import (
    RecordCache,
    LocalRecordCache,
    DEFAULT_TTL_SECONDS
)

__all__ = [
    'RecordCache',
    'LocalRecordCache',
    'DEFAULT_TTL_SECONDS'
]
