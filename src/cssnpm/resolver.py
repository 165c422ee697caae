"""
Import target resolution.

Three pieces, leaves first:
    - Alias Resolver:         logical name prefix → path under root
    - Package Entry Selector: shim → package.json "style" → index.css
    - Name Resolver:          classifies a target (URL / relative / package)
                              and drives the file lookup

The shim table is never stored globally: NameResolver builds one package
filter per instance, closed over its own options, and hands it to every
lookup it performs.
"""

from __future__ import annotations

import functools
import logging
import os
import re
from enum import Enum
from typing import Dict, Optional, Tuple

from cssnpm.config import ImportOptions
from cssnpm.errors import AliasRecursionError, UnresolvableImportError
from cssnpm.module_resolution import (
    ModuleResolutionError,
    PackageDescriptor,
    PackageFilter,
    resolve_sync,
)


logger = logging.getLogger(__name__)

ABS_URL_RE = re.compile(r"^url\(|://", re.IGNORECASE)
RELATIVE_RE = re.compile(r"^\.")
SEPARATOR = "/"
DEFAULT_ENTRY = "index.css"
MAX_ALIAS_DEPTH = 32


class TargetKind(Enum):
    URL = "url"
    RELATIVE = "relative"
    PACKAGE = "package"


def split_import_params(params: str) -> Tuple[str, str]:
    """
    Split @import params into (target, trailing conditions).

    One layer of surrounding quotes is removed from the target.

    Examples:
        '"test"'            -> ('test', '')
        "'./a.css' screen"  -> ('./a.css', 'screen')
        'url(a.css)'        -> ('url(a.css)', '')
    """
    params = params.strip()
    if params[:1] in ("'", '"'):
        quote = params[0]
        end = params.find(quote, 1)
        if end != -1:
            return params[1:end], params[end + 1:].strip()
        return params[1:], ""
    return params, ""


def classify_target(target: str) -> TargetKind:
    if ABS_URL_RE.search(target):
        return TargetKind.URL
    if RELATIVE_RE.match(target):
        return TargetKind.RELATIVE
    return TargetKind.PACKAGE


def is_npm_import(target: str) -> bool:
    """True unless the target is an absolute URL or url(...)."""
    return classify_target(target) != TargetKind.URL


def resolve_alias(name: str, alias: Dict[str, str], root: str, _depth: int = 0) -> Optional[str]:
    """
    Map a package-style name through the alias table.

    An exact match wins; otherwise the name is split on '/', the leading
    segments are resolved recursively and the last segment is joined back
    on, so aliasing "util" also covers "util/index".

    Args:
        name: Package-style name (e.g. "util/index")
        alias: Logical name → path relative to root
        root: Base directory for alias targets

    Returns:
        Absolute path, or None when no prefix of the name is aliased

    Raises:
        AliasRecursionError: If the name has more segments than the depth bound
    """
    if _depth > MAX_ALIAS_DEPTH:
        raise AliasRecursionError(f"Alias expansion of '{name}' exceeded depth {MAX_ALIAS_DEPTH}")

    if name in alias:
        return os.path.normpath(os.path.join(root, alias[name]))

    segments = name.split(SEPARATOR)
    if len(segments) > 1:
        current = segments.pop()
        parent = resolve_alias(SEPARATOR.join(segments), alias, root, _depth + 1)
        if parent:
            return os.path.join(parent, current)

    return None


def select_package_entry(package: PackageDescriptor, shim: Dict[str, str]) -> PackageDescriptor:
    """
    Choose the stylesheet entry of a package, in place.

    Priority: shim override for the package name, then the package's
    "style" field, then index.css.
    """
    name = package.name
    override = shim.get(name) if isinstance(name, str) else None
    style = package.style if isinstance(package.style, str) else None
    package.main = override or style or DEFAULT_ENTRY
    return package


def make_package_filter(shim: Dict[str, str]) -> PackageFilter:
    return functools.partial(select_package_entry, shim=shim)


class NameResolver:
    """
    Turns @import params into absolute stylesheet paths.

    One instance serves one pipeline; it only reads its options.
    """

    def __init__(self, options: ImportOptions):
        self.options = options
        self.package_filter = make_package_filter(options.shim)

    def base_dir(self, importer: Optional[str]) -> str:
        """Directory lookups start from: the importing file's, or root."""
        if importer:
            return os.path.dirname(importer)
        return self.options.root

    def resolve(self, params: str, importer: Optional[str] = None) -> Optional[str]:
        """
        Resolve @import params to a file.

        Args:
            params: Raw @import params text
            importer: Absolute path of the importing file, if known

        Returns:
            Absolute normalized path, or None for URL targets

        Raises:
            UnresolvableImportError: If the target cannot be found, or the
                import carries conditions after its target
        """
        target, conditions = split_import_params(params)
        kind = classify_target(target)
        if kind == TargetKind.URL:
            logger.debug("Leaving URL import untouched: %s", params)
            return None

        basedir = self.base_dir(importer)
        if conditions:
            raise UnresolvableImportError(
                target, basedir, f"conditional import ('{conditions}') cannot be inlined"
            )

        if kind == TargetKind.RELATIVE:
            name = os.path.join(basedir, target)
        else:
            name = resolve_alias(target, self.options.alias, self.options.root) or target

        try:
            path = resolve_sync(
                name,
                basedir=basedir,
                extensions=self.options.extensions,
                package_filter=self.package_filter,
            )
        except ModuleResolutionError as e:
            raise UnresolvableImportError(target, basedir, str(e)) from e

        path = os.path.normpath(path)
        logger.debug("Resolved @import %s -> %s", target, path)
        return path


__all__ = [
    "DEFAULT_ENTRY",
    "NameResolver",
    "TargetKind",
    "classify_target",
    "is_npm_import",
    "make_package_filter",
    "resolve_alias",
    "select_package_entry",
    "split_import_params",
]
