"""
Module Loader

Executes fetched source text as a Python module and hands back the module
object.

Each executed module gets:
- __file__: the resolved location it was loaded from (path or URL)
- __dirname__: its directory context (where relative dependencies live)
- require(name): a dependency resolver bound to that directory context

Dependency names are classified by shape before anything is looked up:
- relative ('./x', '../x', '/abs/x') -> loaded through the loader, from disk
- native ('os', 'json', 'os.path') -> standard library import
- package (anything else) -> searched next to the module first, then in
  the installed packages on sys.path
"""

import importlib
import importlib.machinery
import importlib.util
import itertools
import logging
import os
import re
import sys
import threading
import types
from typing import Any, Iterable, Optional, Union

from resource_loader.core.errors import ExecutionError, LoaderError, ResolutionError
from resource_loader.core.reference import RELATIVE_MARKERS, ResolvedReference


logger = logging.getLogger(__name__)

NATIVE = 'native'
RELATIVE = 'relative'
PACKAGE = 'package'

NATIVE_NAMES = frozenset(getattr(sys, 'stdlib_module_names', ())) | frozenset(sys.builtin_module_names)

_module_ids = itertools.count(1)

# Guards the sys.modules swap done for packages found next to a module.
# Re-entrant: a package may require() another one while it runs.
_rooted_lock = threading.RLock()


def classify_dependency(name: str) -> str:
    """
    Classify a dependency name as NATIVE, RELATIVE or PACKAGE.

    Raises:
        ResolutionError: If the name is empty or not a string
    """
    if not isinstance(name, str) or not name:
        raise ResolutionError(repr(name), reason='dependency name must be a non-empty string')

    if name.startswith(RELATIVE_MARKERS) or os.path.isabs(name):
        return RELATIVE

    has_separator = '/' in name or '\\' in name
    if not has_separator and name.partition('.')[0] in NATIVE_NAMES:
        return NATIVE

    return PACKAGE


def complete_path(target: str, code_suffixes: Iterable[str] = ('.py',)) -> Optional[str]:
    """
    Find the file a relative dependency points at.

    Tries the exact path, then each code suffix appended, then a package
    __init__ inside a directory of that name.
    """
    if os.path.isfile(target):
        return target
    for suffix in code_suffixes:
        if os.path.isfile(target + suffix):
            return target + suffix
    for suffix in code_suffixes:
        init = os.path.join(target, '__init__' + suffix)
        if os.path.isfile(init):
            return init
    return None


def _is_concrete(spec: Optional[importlib.machinery.ModuleSpec]) -> bool:
    """True for a real module or package, False for a bare namespace directory"""
    if spec is None or spec.origin is None or spec.loader is None:
        return False
    namespace_loader = getattr(importlib.machinery, 'NamespaceLoader', None)
    return not (namespace_loader is not None and isinstance(spec.loader, namespace_loader))


def _module_family(top: str) -> list:
    return [key for key in list(sys.modules) if key == top or key.startswith(top + '.')]


class ModuleRequire:
    """
    Dependency resolver bound to one executed module.

    Exposed inside the module as ``require``.
    """

    def __init__(self, loader: Any, dirname: str):
        self.loader = loader
        self.dirname = dirname

    def __call__(self, name: str) -> Any:
        kind = classify_dependency(name)
        logger.debug("require %r from %s (%s)", name, self.dirname, kind)

        if kind == RELATIVE:
            return self._require_relative(name)
        if kind == NATIVE:
            return self._require_native(name)
        return self._require_package(name)

    def _require_relative(self, name: str) -> Any:
        target = os.path.normpath(os.path.join(self.dirname, name))
        path = complete_path(target, self.loader.config.code_suffixes)
        if path is None:
            raise ResolutionError(name, self.dirname, reason=f'no file at {target}')
        return self.loader.load(path)

    def _require_native(self, name: str) -> types.ModuleType:
        try:
            return importlib.import_module(name)
        except ImportError as e:
            raise ResolutionError(name, self.dirname, reason=str(e)) from e

    def _require_package(self, name: str) -> types.ModuleType:
        top = name.partition('.')[0]
        if not top.isidentifier():
            raise ResolutionError(name, self.dirname, reason='not a valid module name')

        spec = importlib.machinery.PathFinder.find_spec(top, [self.dirname])
        if _is_concrete(spec):
            return self._load_rooted(name, top, spec)

        try:
            return importlib.import_module(name)
        except ImportError as e:
            raise ResolutionError(name, self.dirname, reason=str(e)) from e

    def _load_rooted(self, name: str, top: str, spec: importlib.machinery.ModuleSpec) -> types.ModuleType:
        """
        Execute a package found in the module's own directory.

        The package is registered in sys.modules only while it runs (so
        its own imports work) and the previous entries are restored after.
        Only one thread at a time may hold the swap.
        """
        with _rooted_lock:
            saved = {key: sys.modules[key] for key in _module_family(top)}
            module = importlib.util.module_from_spec(spec)
            sys.modules[top] = module
            try:
                spec.loader.exec_module(module)
                if name != top:
                    module = importlib.import_module(name)
            except ImportError as e:
                raise ResolutionError(name, self.dirname, reason=str(e)) from e
            except LoaderError:
                raise
            except Exception as e:
                raise ExecutionError(spec.origin or name, e) from e
            finally:
                for key in _module_family(top):
                    sys.modules.pop(key, None)
                sys.modules.update(saved)

        logger.debug("loaded %s from %s", name, spec.origin)
        return module

    def __repr__(self) -> str:
        return f"<require from {self.dirname}>"


def _module_name(resolved: ResolvedReference) -> str:
    stem = os.path.splitext(resolved.name)[0] or 'module'
    stem = re.sub(r'\W', '_', stem)
    return f"resource_{stem}_{next(_module_ids)}"


def default_dirname(resolved: ResolvedReference) -> str:
    """Directory context of a module when no override is given"""
    if resolved.is_local:
        return str(resolved.path.parent)
    return os.getcwd()


def execute_module(
    source: Union[str, bytes],
    resolved: ResolvedReference,
    loader: Any,
    dirname: Optional[Union[str, os.PathLike]] = None,
) -> types.ModuleType:
    """
    Execute source text as a fresh module.

    Args:
        source: Module source code
        resolved: Where the source came from (used for __file__ and errors)
        loader: ResourceLoader used by the module's require() for relative names
        dirname: Override for the module's directory context

    Returns:
        The executed module object

    Raises:
        ExecutionError: If the source has a syntax error or raises while running
        ResolutionError: If the module requires a name that can't be resolved
    """
    if dirname is None:
        dirname = default_dirname(resolved)
    else:
        dirname = os.path.abspath(os.fspath(dirname))

    module_name = _module_name(resolved)
    module = types.ModuleType(module_name)
    module.__file__ = resolved.location
    module.__dirname__ = dirname
    module.require = ModuleRequire(loader, dirname)

    try:
        code = compile(source, resolved.location, 'exec')
    except (SyntaxError, ValueError) as e:
        raise ExecutionError(resolved.location, e) from e

    # Present while running only, some stdlib helpers (dataclasses,
    # typing) look the defining module up by name
    sys.modules[module_name] = module
    try:
        exec(code, module.__dict__)
    except LoaderError:
        raise
    except Exception as e:
        raise ExecutionError(resolved.location, e) from e
    finally:
        sys.modules.pop(module_name, None)

    logger.debug("executed %s (dirname=%s)", resolved.location, dirname)
    return module
