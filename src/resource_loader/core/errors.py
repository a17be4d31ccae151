"""
Loader errors

Every failure raised by the loader derives from LoaderError so callers can
catch the whole family, while the concrete classes let them tell "resource
absent" apart from "remote server error" and "code failed to run".
"""

from typing import Optional


class LoaderError(Exception):
    """Base exception for resource loading errors"""
    pass


class NotFoundError(LoaderError):
    """Raised when a local reference does not exist"""
    pass


class ReadError(LoaderError):
    """Raised when a local reference exists but can't be read"""
    pass


class HTTPStatusError(LoaderError):
    """Raised when a remote response is neither 200 nor 304"""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Unhandled response status {status_code} for {url}")


class CacheError(LoaderError):
    """Raised when the server answers 304 but nothing is cached for the URL"""
    pass


class ResolutionError(LoaderError):
    """Raised when a module dependency name can't be resolved"""

    def __init__(self, name: str, dirname: Optional[str] = None, reason: str = ''):
        self.name = name
        self.dirname = dirname
        message = f"Cannot resolve dependency '{name}'"
        if dirname:
            message += f" from {dirname}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ExecutionError(LoaderError):
    """Raised when module source fails to compile or run"""

    def __init__(self, reference: str, error: BaseException):
        self.reference = reference
        super().__init__(
            f"Failed to execute module {reference}: {type(error).__name__}: {error}"
        )
