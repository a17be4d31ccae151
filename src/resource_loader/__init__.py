"""
Resource Loader: one call for files, URLs and modules.

Given a path or URL, returns the resource's text, or, when the resource is
Python source, the executed module.

The loader provides:
- Local and HTTP retrieval behind the same call
- Conditional GETs (ETag / Last-Modified) with an in-memory body cache
- Module execution with a scoped require() for native, installed and
  relative dependencies, and an overridable __dirname__
- Structural loading: every path in a dict/list is loaded concurrently

Example:
    >>> import resource_loader
    >>>
    >>> # Text from disk or HTTP
    >>> text = resource_loader.load('./file.txt', base_path='/srv/assets')
    >>> text = resource_loader.load('./file.txt', base_path='http://cdn.example')
    >>>
    >>> # Python source comes back executed
    >>> plugin = resource_loader.load('http://cdn.example/plugin.py')
    >>> plugin.__dirname__
    >>> plugin.require('./helpers')
    >>>
    >>> # Structures are walked
    >>> resource_loader.load({'readme': './README.md', 'retries': 3})
"""

__version__ = "0.1.0"
__author__ = "Dan Q"
__email__ = "danq@dbbasic.com"

from resource_loader.core.errors import (
    CacheError,
    ExecutionError,
    HTTPStatusError,
    LoaderError,
    NotFoundError,
    ReadError,
    ResolutionError,
)
from resource_loader.core.loader import (
    LoadOptions,
    ResourceLoader,
    create,
    get_loader,
    load,
    reset_loader,
)
from resource_loader.core.revalidation_cache import CacheEntry, RevalidationCache

__all__ = [
    "__version__",
    "load",
    "create",
    "get_loader",
    "reset_loader",
    "LoadOptions",
    "ResourceLoader",
    "RevalidationCache",
    "CacheEntry",
    "LoaderError",
    "NotFoundError",
    "ReadError",
    "HTTPStatusError",
    "CacheError",
    "ResolutionError",
    "ExecutionError",
]
