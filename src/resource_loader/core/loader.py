"""
Resource Loader

Entry point tying the pieces together:

    reference -> resolve -> fetch (cache) -> classify -> text | module

A dict/list/tuple is walked instead, each path-like entry going through
the same pipeline concurrently.
"""

import logging
import os
from typing import Any, Dict, Optional, Union

import requests

from resource_loader.config import LoaderConfig, get_config
from resource_loader.core.content import CODE, classify, decode_text
from resource_loader.core.errors import ExecutionError, LoaderError
from resource_loader.core.load_log import LoadLog
from resource_loader.core.module_loader import execute_module
from resource_loader.core.reference import ResolvedReference, resolve_reference
from resource_loader.core.retrieval import FetchResult, fetch
from resource_loader.core.revalidation_cache import RevalidationCache
from resource_loader.core.structure import is_structure, resolve_structure


logger = logging.getLogger(__name__)

PathType = Union[str, os.PathLike]

OPTION_ALIASES = {
    'base_path': 'base_path',
    'basePath': 'base_path',
    'dirname': 'dirname',
}


class LoadOptions:
    """
    Per-call options.

    base_path: directory or URL relative references are resolved against
               (default: current working directory)
    dirname: overrides the directory context of loaded modules
    """

    __slots__ = ('base_path', 'dirname')

    def __init__(self, base_path: Optional[PathType] = None, dirname: Optional[PathType] = None):
        self.base_path = base_path
        self.dirname = dirname

    @classmethod
    def coerce(cls, options: Union['LoadOptions', Dict[str, Any], None]) -> 'LoadOptions':
        """Accept a LoadOptions, a plain dict, or None"""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if isinstance(options, dict):
            values = {}
            for key, value in options.items():
                if key not in OPTION_ALIASES:
                    raise TypeError(f"Unknown load option: {key}")
                values[OPTION_ALIASES[key]] = value
            return cls(**values)
        raise TypeError(f"options must be LoadOptions or dict, not {type(options).__name__}")

    def merged(self, base_path: Optional[PathType] = None, dirname: Optional[PathType] = None) -> 'LoadOptions':
        """Copy with explicitly given values taking precedence"""
        return LoadOptions(
            base_path=self.base_path if base_path is None else base_path,
            dirname=self.dirname if dirname is None else dirname,
        )

    def __repr__(self) -> str:
        return f"LoadOptions(base_path={self.base_path!r}, dirname={self.dirname!r})"


class ResourceLoader:
    """
    Loads files and modules from disk or HTTP.

    Owns its revalidation cache, so separate loaders never share
    validators or bodies.
    """

    def __init__(
        self,
        config: Optional[LoaderConfig] = None,
        cache: Optional[RevalidationCache] = None,
        load_log: Optional[LoadLog] = None,
    ):
        """
        Initialize loader.

        Args:
            config: Loader settings (default: global configuration)
            cache: Revalidation cache (default: a new, private cache)
            load_log: Journal of load events (default: one under
                      config.log_dir when that is set, otherwise none)
        """
        self.config = config if config is not None else get_config()
        self.cache = cache if cache is not None else RevalidationCache()

        if load_log is None and self.config.log_dir:
            load_log = LoadLog(self.config.log_dir)
        self.load_log = load_log

    def load(
        self,
        target: Any,
        base_path: Optional[PathType] = None,
        dirname: Optional[PathType] = None,
        options: Union[LoadOptions, Dict[str, Any], None] = None,
    ) -> Any:
        """
        Load a reference, or every reference inside a structure.

        Args:
            target: Path/URL string, os.PathLike, or dict/list/tuple of them
            base_path: Base for relative references (overrides options)
            dirname: Directory context for loaded modules (overrides options)
            options: LoadOptions or dict with base_path/basePath/dirname

        Returns:
            Text (or bytes when not decodable) for data, the executed module
            for code, or a structure of the same shape for structures

        Raises:
            LoaderError subclasses, or requests exceptions for transport failures
        """
        opts = LoadOptions.coerce(options).merged(base_path=base_path, dirname=dirname)

        if is_structure(target):
            return resolve_structure(
                target,
                lambda reference: self._load_reference(reference, opts),
                max_workers=self.config.max_workers,
            )

        if isinstance(target, (str, os.PathLike)):
            return self._load_reference(target, opts)

        raise TypeError(f"Cannot load {type(target).__name__}: expected a path, URL or structure")

    def resolve(self, reference: PathType, base_path: Optional[PathType] = None) -> ResolvedReference:
        """Resolve a reference without fetching it"""
        return resolve_reference(reference, base_path)

    def _load_reference(self, reference: PathType, options: LoadOptions) -> Any:
        resolved = resolve_reference(reference, options.base_path)

        try:
            result = fetch(
                resolved,
                self.cache,
                timeout=self.config.timeout,
                user_agent=self.config.user_agent,
                serialize=self.config.serialize_revalidation,
            )
        except (LoaderError, requests.RequestException) as e:
            self._journal('error', f"Fetch failed: {e}", resolved,
                          error=type(e).__name__, status_code=getattr(e, 'status_code', None))
            raise

        kind = classify(resolved, self.config.code_suffixes)
        self._journal('info', f"Loaded {resolved.name}", resolved,
                      source=result.source, kind=kind, status_code=result.status_code)

        if kind == CODE:
            return self._execute(result, resolved, options)

        try:
            return decode_text(result.body, result.encoding)
        except UnicodeDecodeError:
            logger.debug("%s is not text, returning bytes", resolved)
            return result.body

    def _execute(self, result: FetchResult, resolved: ResolvedReference, options: LoadOptions) -> Any:
        try:
            if result.encoding:
                source = decode_text(result.body, result.encoding)
            else:
                # compile() honours a coding declaration in raw bytes
                source = result.body
            return execute_module(source, resolved, self, dirname=options.dirname)
        except UnicodeDecodeError as e:
            error = ExecutionError(resolved.location, e)
            self._journal('error', f"Execution failed: {error}", resolved, error=type(error).__name__)
            raise error from e
        except LoaderError as e:
            self._journal('error', f"Execution failed: {e}", resolved, error=type(e).__name__)
            raise

    def _journal(self, level: str, message: str, resolved: ResolvedReference, **fields) -> None:
        logger.debug("%s %s", message, resolved)
        if self.load_log is not None:
            write = self.load_log.error if level == 'error' else self.load_log.info
            write(message, reference=resolved.location, **fields)

    def clear_cache(self) -> None:
        """Forget every cached remote body and validator"""
        self.cache.clear()

    def get_cache_stats(self) -> Dict[str, int]:
        return self.cache.get_stats()


def create(**kwargs) -> ResourceLoader:
    """Create an independent loader (with its own cache)"""
    return ResourceLoader(**kwargs)


# Process-wide default loader (lazy loaded)
_loader = None


def get_loader() -> ResourceLoader:
    """Get the process-wide default loader"""
    global _loader
    if _loader is None:
        _loader = ResourceLoader()
    return _loader


def reset_loader():
    """Drop the default loader (and its cache)"""
    global _loader
    _loader = None


def load(
    target: Any,
    base_path: Optional[PathType] = None,
    dirname: Optional[PathType] = None,
    options: Union[LoadOptions, Dict[str, Any], None] = None,
) -> Any:
    """Load with the process-wide default loader"""
    return get_loader().load(target, base_path=base_path, dirname=dirname, options=options)
