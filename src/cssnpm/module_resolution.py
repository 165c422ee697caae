"""
Node-module-style file resolution.

Implements the directory-walking lookup that maps a module name to a file:

    relative or absolute name X (from directory D):
        1. LOAD_AS_FILE(D/X)
        2. LOAD_AS_DIRECTORY(D/X)

    bare name X (from directory D):
        for each node_modules directory from D up to the filesystem root:
            1. LOAD_AS_FILE(node_modules/X)
            2. LOAD_AS_DIRECTORY(node_modules/X)

    LOAD_AS_FILE(X):      X, then X + each extension
    LOAD_AS_DIRECTORY(X): package.json "main" (after the package filter),
                          then X/index + each extension

The package filter hook receives the parsed package.json of every
candidate directory and may rewrite its `main` field before it is used.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional, Sequence


logger = logging.getLogger(__name__)

PACKAGE_FILE = "package.json"
NODE_MODULES = "node_modules"


class ModuleResolutionError(Exception):
    """Raised when a module name cannot be mapped to a file."""

    def __init__(self, name: str, basedir: str, reason: Optional[str] = None):
        self.name = name
        self.basedir = basedir
        message = reason or f"Cannot find module '{name}' from '{basedir}'"
        super().__init__(message)


@dataclass
class PackageDescriptor:
    """
    Parsed package.json of a candidate package directory.

    Properties:
        directory: Absolute path of the package directory
        data: Raw package.json contents
        main: Entry file, relative to directory; filters may rewrite it
    """

    directory: str
    data: Dict[str, Any] = field(default_factory=dict)
    main: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return self.data.get("name")

    @property
    def style(self) -> Optional[str]:
        return self.data.get("style")


PackageFilter = Callable[[PackageDescriptor], PackageDescriptor]


def _is_path_like(name: str) -> bool:
    return (
        name in (".", "..")
        or name.startswith(("./", "../", "/", ".\\", "..\\"))
        or os.path.isabs(name)
    )


def _load_as_file(candidate: str, extensions: Sequence[str]) -> Optional[str]:
    if os.path.isfile(candidate):
        return candidate
    for ext in extensions:
        if os.path.isfile(candidate + ext):
            return candidate + ext
    return None


def _load_index(directory: str, extensions: Sequence[str]) -> Optional[str]:
    for ext in extensions:
        index = os.path.join(directory, "index" + ext)
        if os.path.isfile(index):
            return index
    return None


def read_package(directory: str) -> Optional[PackageDescriptor]:
    """Read `directory/package.json`, or return None when there is none."""
    package_file = os.path.join(directory, PACKAGE_FILE)
    if not os.path.isfile(package_file):
        return None
    try:
        with open(package_file, encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as e:
        raise ModuleResolutionError(
            directory, directory, f"Invalid {PACKAGE_FILE} in '{directory}': {e}"
        ) from e
    if not isinstance(data, dict):
        raise ModuleResolutionError(
            directory, directory, f"Invalid {PACKAGE_FILE} in '{directory}': not an object"
        )
    main = data.get("main")
    return PackageDescriptor(directory=directory, data=data, main=main if isinstance(main, str) else None)


def _load_as_directory(candidate: str, extensions: Sequence[str],
                       package_filter: Optional[PackageFilter]) -> Optional[str]:
    if not os.path.isdir(candidate):
        return None
    package = read_package(candidate)
    if package is not None:
        if package_filter is not None:
            package = package_filter(package)
        if package.main:
            entry = os.path.join(candidate, package.main)
            found = _load_as_file(entry, extensions) or (
                _load_index(entry, extensions) if os.path.isdir(entry) else None
            )
            if found:
                return found
            logger.debug("Package %s declares missing entry %s", candidate, package.main)
    return _load_index(candidate, extensions)


def node_modules_paths(basedir: str) -> Iterator[str]:
    """Yield candidate node_modules directories from `basedir` upwards."""
    current = os.path.abspath(basedir)
    while True:
        if os.path.basename(current) != NODE_MODULES:
            yield os.path.join(current, NODE_MODULES)
        parent = os.path.dirname(current)
        if parent == current:
            return
        current = parent


def resolve_sync(name: str, basedir: str, extensions: Sequence[str] = (".js",),
                 package_filter: Optional[PackageFilter] = None) -> str:
    """
    Resolve a module name to an absolute file path.

    Args:
        name: Module name, relative path or absolute path
        basedir: Directory the lookup starts from
        extensions: File extensions tried when the name has none
        package_filter: Hook applied to each candidate package.json

    Returns:
        Absolute, normalized path of the resolved file

    Raises:
        ModuleResolutionError: If nothing matches
    """
    basedir = os.path.abspath(basedir)

    if _is_path_like(name):
        candidates = [os.path.join(basedir, name)]
    else:
        candidates = [os.path.join(d, name) for d in node_modules_paths(basedir)]

    for candidate in candidates:
        found = _load_as_file(candidate, extensions) or _load_as_directory(
            candidate, extensions, package_filter
        )
        if found:
            return os.path.normpath(os.path.abspath(found))

    raise ModuleResolutionError(name, basedir)


__all__ = [
    "ModuleResolutionError",
    "PackageDescriptor",
    "PackageFilter",
    "node_modules_paths",
    "read_package",
    "resolve_sync",
]
