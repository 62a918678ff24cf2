"""
Gateway caching package.

Two storage policies live side by side: the record store keeps fully formed
chapter documents without expiry, and the response cache keeps raw upstream
GET responses for a bounded TTL.
"""

from .record_store import RecordStore
from .response_cache import CachedResponse, ResponseCache

__all__ = ["RecordStore", "CachedResponse", "ResponseCache"]
