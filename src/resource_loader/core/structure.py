"""
Structural Resolver

Walks a dict/list/tuple and replaces every path-like entry with whatever
the loader returns for it. Everything else is passed through untouched.

- Entries at one level are loaded concurrently and joined before returning
- Key order, index order and container type are preserved
- A nested structure with nothing to load is returned as the same object
- The first failing branch fails the whole call
"""

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional

from resource_loader.core.reference import is_path_like


# Plan marker for an entry that is itself a reference
LOAD = 'load'


def is_structure(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple))


def _entries(value: Any) -> List[Any]:
    if isinstance(value, dict):
        return list(value.values())
    return list(value)


def plan_structure(value: Any) -> Optional[Dict[int, Any]]:
    """
    Work out, in one pass, which entries need loading.

    Returns:
        {index: LOAD or nested plan} for the entries that need work, or
        None when nothing under value is path-like
    """
    if not is_structure(value):
        return None

    plan = {}
    for index, item in enumerate(_entries(value)):
        if is_path_like(item):
            plan[index] = LOAD
        else:
            nested = plan_structure(item)
            if nested:
                plan[index] = nested
    return plan or None


def resolve_structure(
    value: Any,
    load_one: Callable[[Any], Any],
    max_workers: int = 8,
) -> Any:
    """
    Resolve path-like entries of a structure.

    Args:
        value: dict, list or tuple (anything else is returned as-is)
        load_one: Called with each path-like entry, returns its loaded value
        max_workers: Thread pool size for one level

    Returns:
        A structure of the same shape with path-like entries loaded
    """
    plan = plan_structure(value)
    if plan is None:
        return value
    return _resolve_planned(value, plan, load_one, max_workers)


def _resolve_planned(
    value: Any,
    plan: Dict[int, Any],
    load_one: Callable[[Any], Any],
    max_workers: int,
) -> Any:
    items = _entries(value)
    results: Dict[int, Any] = {}

    def resolve_entry(item: Any, entry_plan: Any) -> Any:
        if entry_plan == LOAD:
            return load_one(item)
        return _resolve_planned(item, entry_plan, load_one, max_workers)

    with ThreadPoolExecutor(max_workers=min(max_workers, len(plan)),
                            thread_name_prefix="resolve") as executor:
        futures = {
            executor.submit(resolve_entry, items[index], entry_plan): index
            for index, entry_plan in plan.items()
        }
        done, not_done = wait(futures, return_when=FIRST_EXCEPTION)

        for future in done:
            if future.exception() is not None:
                for other in not_done:
                    other.cancel()
                raise future.exception()

        for future, index in futures.items():
            results[index] = future.result()

    resolved: List[Any] = [results.get(index, item) for index, item in enumerate(items)]

    if isinstance(value, dict):
        return dict(zip(value.keys(), resolved))
    if isinstance(value, tuple):
        if hasattr(value, '_fields'):
            return type(value)(*resolved)
        return tuple(resolved)
    return resolved
