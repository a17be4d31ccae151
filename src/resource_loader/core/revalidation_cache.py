"""
Revalidation Cache

Remembers the validators (ETag, Last-Modified) and body of every remote
resource fetched with a 200, so the next request can be conditional and a
304 answer can be served from memory.

Design:
- Keyed by the resolved URL
- Unbounded, no eviction, no TTL (entries live as long as the cache)
- Entries are replaced whole on each 200, never patched
- A 304 only reads the entry
"""

import threading
import time
from typing import Dict, Optional


class CacheEntry:
    """Validators and body of the last 200 response for a URL"""

    __slots__ = ('etag', 'last_modified', 'body', 'encoding', 'stored_at')

    def __init__(
        self,
        body: bytes,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
        encoding: Optional[str] = None,
    ):
        self.body = body
        self.etag = etag
        self.last_modified = last_modified
        self.encoding = encoding
        self.stored_at = time.time()

    def conditional_headers(self) -> Dict[str, str]:
        """Headers for revalidating this entry (empty if no validators known)"""
        headers = {}
        if self.etag is not None:
            headers['If-None-Match'] = self.etag
        if self.last_modified is not None:
            headers['If-Modified-Since'] = self.last_modified
        return headers

    def __repr__(self) -> str:
        return (
            f"CacheEntry(etag={self.etag!r}, last_modified={self.last_modified!r}, "
            f"size={len(self.body)})"
        )


class RevalidationCache:
    """
    In-memory store of CacheEntry objects keyed by URL.

    Safe to share between threads. Each URL also gets its own lock which
    callers may hold across a request/response cycle to serialize
    revalidation of that URL.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._url_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self._stats = {'hits': 0, 'misses': 0}

    def get(self, url: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(url)

    def store(
        self,
        url: str,
        body: bytes,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
        encoding: Optional[str] = None,
    ) -> CacheEntry:
        """
        Store (or replace) the entry for a URL after a 200 response.

        Returns:
            The new CacheEntry
        """
        entry = CacheEntry(body, etag=etag, last_modified=last_modified, encoding=encoding)
        with self._lock:
            self._entries[url] = entry
            self._stats['misses'] += 1
        return entry

    def record_hit(self) -> None:
        """Count a 304 served from the cache"""
        with self._lock:
            self._stats['hits'] += 1

    def lock_for(self, url: str) -> threading.Lock:
        """Per-URL lock used to serialize revalidation of one URL"""
        with self._lock:
            lock = self._url_locks.get(url)
            if lock is None:
                lock = self._url_locks[url] = threading.Lock()
            return lock

    def clear(self) -> None:
        """Drop every entry and reset statistics"""
        with self._lock:
            self._entries.clear()
            self._stats = {'hits': 0, 'misses': 0}

    def get_stats(self) -> Dict[str, int]:
        """
        Get cache statistics.

        Returns:
            Dict with 'hits' (304 replays), 'misses' (200 stores), 'size'
        """
        with self._lock:
            return {
                'hits': self._stats['hits'],
                'misses': self._stats['misses'],
                'size': len(self._entries),
            }

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
