"""
Resource Identifier

Turns a reference (path or URL, absolute or relative) into an absolute
location and says whether it lives on disk or behind HTTP.

Rules:
- A reference with a scheme is absolute and used as-is
- A relative reference against a URL base follows URL joining rules
- Otherwise both are filesystem paths, joined and normalized
"""

import os
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname


REMOTE_SCHEMES = ('http', 'https')
RELATIVE_MARKERS = ('./', '../', '.' + os.sep, '..' + os.sep)


class ResolvedReference:
    """An absolute location classified as local or remote"""

    __slots__ = ('location', 'is_remote')

    def __init__(self, location: str, is_remote: bool):
        self.location = location
        self.is_remote = is_remote

    @property
    def is_local(self) -> bool:
        return not self.is_remote

    @property
    def path(self) -> Path:
        """Filesystem path of a local reference"""
        if self.is_remote:
            raise ValueError(f"Remote reference has no local path: {self.location}")
        return Path(self.location)

    @property
    def name(self) -> str:
        """Final path segment, ignoring any query string or fragment"""
        if self.is_remote:
            segment = urlsplit(self.location).path.rsplit('/', 1)[-1]
        else:
            segment = os.path.basename(self.location)
        return segment

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ResolvedReference):
            return NotImplemented
        return (self.location, self.is_remote) == (other.location, other.is_remote)

    def __hash__(self) -> int:
        return hash((self.location, self.is_remote))

    def __str__(self) -> str:
        return self.location

    def __repr__(self) -> str:
        kind = 'remote' if self.is_remote else 'local'
        return f"ResolvedReference({self.location!r}, {kind})"


def _scheme(reference: str) -> str:
    # Single-letter schemes are Windows drive letters, not URLs
    scheme = urlsplit(reference).scheme
    return scheme.lower() if len(scheme) > 1 else ''


def is_url(reference: str) -> bool:
    """True if reference is an absolute URL"""
    return bool(_scheme(reference))


def _file_url_to_path(reference: str) -> str:
    parts = urlsplit(reference)
    return url2pathname(parts.path)


def resolve_reference(
    reference: Union[str, os.PathLike],
    base: Optional[Union[str, os.PathLike]] = None,
) -> ResolvedReference:
    """
    Resolve a reference against a base.

    Args:
        reference: Path or URL, absolute or relative
        base: Local directory or base URL (default: current working directory)

    Returns:
        ResolvedReference with an absolute location
    """
    reference = os.fspath(reference)
    scheme = _scheme(reference)

    if scheme == 'file':
        return ResolvedReference(os.path.normpath(_file_url_to_path(reference)), False)
    if scheme:
        return ResolvedReference(reference, True)

    base = os.getcwd() if base is None else os.fspath(base)
    base_scheme = _scheme(base)

    if base_scheme == 'file':
        base = _file_url_to_path(base)
    elif base_scheme:
        return ResolvedReference(urljoin(base, reference), True)

    if os.path.isabs(reference):
        return ResolvedReference(os.path.normpath(reference), False)

    return ResolvedReference(
        os.path.normpath(os.path.join(os.path.abspath(base), reference)),
        False,
    )


def is_path_like(value: Any) -> bool:
    """
    Decide whether a structural entry should be loaded.

    Path-like values are strings (or os.PathLike objects) that are
    absolute URLs, absolute filesystem paths, or start with ./ or ../
    """
    if isinstance(value, os.PathLike):
        return True
    if not isinstance(value, str) or not value:
        return False
    scheme = _scheme(value)
    if scheme:
        return scheme in REMOTE_SCHEMES or scheme == 'file'
    return os.path.isabs(value) or value.startswith(RELATIVE_MARKERS)
