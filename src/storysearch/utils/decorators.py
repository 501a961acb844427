#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/utils/decorators.py
"""Utility decorators and context managers shared by the index backends.

``requires_dependencies`` guards code paths that need an optional package
(the BM25 backend needs ``rank-bm25``) and turns a missing or outdated
install into a ``DependencyError`` with an install hint. ``debug_timer``
logs elapsed time for a block at DEBUG level.

"""

from __future__ import annotations

import importlib
import logging
import time
from contextlib import contextmanager
from functools import wraps
from importlib import metadata
from typing import Any, Callable, Iterator, Sequence

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from storysearch.exceptions import DependencyError


def get_package_version(package_name: str) -> str | None:
    """Return the installed distribution version of ``package_name``, or None."""
    try:
        return metadata.version(package_name)
    except metadata.PackageNotFoundError:
        return None


def check_version_requirement(package_name: str, version_spec: str) -> tuple[bool, str | None]:
    """Check if an installed package satisfies ``version_spec``.

    Parameters
    ----------
    package_name : str
        Distribution name as used by pip
    version_spec : str
        Version specification (e.g., ">=0.2.2")

    Returns
    -------
    tuple
        (meets_requirement, installed_version)

    """
    found = get_package_version(package_name)
    if found is None:
        return False, None
    try:
        return Version(found) in SpecifierSet(version_spec), found
    except (InvalidSpecifier, InvalidVersion):
        return True, found


def _check_packages(
    packages: Sequence[tuple[str, str, str]],
) -> tuple[list[tuple[str, str]], list[tuple[str, str, str]], ImportError | None]:
    """Import each package and collect what is absent or too old."""
    absent: list[tuple[str, str]] = []
    outdated: list[tuple[str, str, str]] = []
    first_failure: ImportError | None = None

    for dist_name, module_name, spec in packages:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            absent.append((dist_name, spec))
            first_failure = first_failure or exc
            continue
        if not spec:
            continue
        ok, found = check_version_requirement(dist_name, spec)
        if not ok:
            outdated.append((dist_name, spec, found or "unknown"))

    return absent, outdated, first_failure


def requires_dependencies(feature_name: str, packages: Sequence[tuple[str, str, str]]) -> Callable:
    """Check required dependencies and versions before a call.

    Parameters
    ----------
    feature_name : str
        Name of the feature (e.g. "bm25"), used in error messages
    packages : sequence of tuple
        Required packages as (install_name, import_name, version_spec) tuples

    Returns
    -------
    Callable
        Decorator that validates the packages before running the wrapped function

    Raises
    ------
    DependencyError
        If any required package is missing or has an incompatible version

    Examples
    --------
        >>> @requires_dependencies("bm25", [("rank-bm25", "rank_bm25", ">=0.2.2")])
        ... def build(self, rows):
        ...     from rank_bm25 import BM25Okapi

    """

    def guard(func: Callable) -> Callable:
        @wraps(func)
        def checked(*args: Any, **kwargs: Any) -> Any:
            absent, outdated, first_failure = _check_packages(packages)
            if absent or outdated:
                raise DependencyError(
                    feature_name, absent, outdated, original_import_error=first_failure
                ) from first_failure
            return func(*args, **kwargs)

        return checked

    return guard


@contextmanager
def debug_timer(logger: logging.Logger, operation: str) -> Iterator[None]:
    """Log the elapsed time of a block at DEBUG level.

    Parameters
    ----------
    logger : logging.Logger
        Destination for the timing record
    operation : str
        Label for the timed block (e.g., "Index rebuild")

    Examples
    --------
        >>> with debug_timer(logger, "Index rebuild"):
        ...     index.rebuild(rows)
        ... # Logs: "Index rebuild completed in 1.23s" at DEBUG level

    """
    if not logger.isEnabledFor(logging.DEBUG):
        yield
        return
    started = time.perf_counter()
    yield
    logger.debug("%s completed in %.2fs", operation, time.perf_counter() - started)
