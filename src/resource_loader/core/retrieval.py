"""
Retrieval Layer

Fetches the raw bytes behind a resolved reference.

- Local references are read from disk
- Remote references are fetched with HTTP GET, made conditional whenever
  the revalidation cache holds validators for the URL
- 200 refreshes the cache, 304 replays it, anything else is an error
"""

import logging
from contextlib import nullcontext
from typing import Optional

import requests

from resource_loader.core.content import charset_from_content_type
from resource_loader.core.errors import CacheError, HTTPStatusError, NotFoundError, ReadError
from resource_loader.core.reference import ResolvedReference
from resource_loader.core.revalidation_cache import RevalidationCache


logger = logging.getLogger(__name__)

SOURCE_LOCAL = 'local'
SOURCE_NETWORK = 'network'
SOURCE_CACHE = 'cache'


class FetchResult:
    """Body of a fetched resource and where it came from"""

    __slots__ = ('body', 'encoding', 'source', 'status_code')

    def __init__(
        self,
        body: bytes,
        source: str,
        encoding: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.body = body
        self.source = source
        self.encoding = encoding
        self.status_code = status_code


def read_local(resolved: ResolvedReference) -> FetchResult:
    """
    Read a local file.

    Raises:
        NotFoundError: If the path doesn't exist
        ReadError: If the path can't be read (directory, permissions, I/O)
    """
    path = resolved.path
    try:
        body = path.read_bytes()
    except FileNotFoundError as e:
        raise NotFoundError(f"File not found: {path}") from e
    except OSError as e:
        raise ReadError(f"Failed to read {path}: {e}") from e

    logger.debug("read %s (%d bytes)", path, len(body))
    return FetchResult(body, SOURCE_LOCAL)


def fetch_remote(
    resolved: ResolvedReference,
    cache: RevalidationCache,
    timeout: Optional[float] = None,
    user_agent: Optional[str] = None,
    serialize: bool = True,
) -> FetchResult:
    """
    GET a remote resource, revalidating against the cache.

    Args:
        resolved: Remote reference
        cache: Revalidation cache shared by the loader
        timeout: Request timeout in seconds (passed to requests)
        user_agent: User-Agent header value
        serialize: Hold the URL's lock for the whole request/response cycle

    Returns:
        FetchResult from the network (200) or the cache (304)

    Raises:
        HTTPStatusError: On any status other than 200 or 304
        CacheError: On 304 with nothing cached for the URL
        requests.RequestException: On transport failures (not wrapped)
    """
    url = resolved.location
    lock = cache.lock_for(url) if serialize else nullcontext()

    with lock:
        headers = {}
        if user_agent:
            headers['User-Agent'] = user_agent

        entry = cache.get(url)
        if entry is not None:
            headers.update(entry.conditional_headers())

        response = requests.get(url, headers=headers, timeout=timeout)
        status = response.status_code

        if status == 200:
            body = response.content
            encoding = charset_from_content_type(response.headers.get('Content-Type'))
            cache.store(
                url,
                body,
                etag=response.headers.get('ETag'),
                last_modified=response.headers.get('Last-Modified'),
                encoding=encoding,
            )
            logger.debug("fetched %s (%d bytes)", url, len(body))
            return FetchResult(body, SOURCE_NETWORK, encoding=encoding, status_code=status)

        if status == 304:
            # Match against whatever is cached now, not the entry read above
            entry = cache.get(url)
            if entry is None:
                raise CacheError(f"Server answered 304 for {url} but nothing is cached")
            cache.record_hit()
            logger.debug("revalidated %s from cache", url)
            return FetchResult(entry.body, SOURCE_CACHE, encoding=entry.encoding, status_code=status)

        raise HTTPStatusError(status, url)


def fetch(
    resolved: ResolvedReference,
    cache: RevalidationCache,
    timeout: Optional[float] = None,
    user_agent: Optional[str] = None,
    serialize: bool = True,
) -> FetchResult:
    """Fetch a resolved reference from disk or over HTTP"""
    if resolved.is_remote:
        return fetch_remote(
            resolved,
            cache,
            timeout=timeout,
            user_agent=user_agent,
            serialize=serialize,
        )
    return read_local(resolved)
