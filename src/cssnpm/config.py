"""
Configuration for the npm import stage.

ImportOptions is built once per pipeline and treated as read-only for
every pass that uses it. Options can come from keyword arguments, from a
plain mapping (camelCase keys accepted) or from a YAML file.

Recognized options:
    root            base directory for labels and alias targets (cwd)
    prefilter       (content, file_path) -> content, applied before parsing
    alias           logical name -> path relative to root
    shim            package name -> entry file overriding package.json
    include_plugins nested imports run through the whole pipeline
    prepend         import targets injected before the first pass
    extensions      stylesheet extensions tried during lookup
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import yaml

from cssnpm.errors import InvalidConfigurationError


Prefilter = Callable[[str, str], str]

DEFAULT_EXTENSIONS: Tuple[str, ...] = (".css",)

_KEY_ALIASES = {
    "includePlugins": "include_plugins",
}


def identity(content: str, file_path: Optional[str] = None) -> str:
    """Default prefilter: returns the content unchanged."""
    return content


def _check_str_mapping(name: str, value: Any) -> Dict[str, str]:
    if not isinstance(value, Mapping):
        raise InvalidConfigurationError(f"Option '{name}' must be a mapping, got {type(value).__name__}")
    for key, target in value.items():
        if not isinstance(key, str) or not isinstance(target, str):
            raise InvalidConfigurationError(f"Option '{name}' must map strings to strings (bad entry {key!r})")
    return dict(value)


def _check_str_list(name: str, value: Any) -> List[str]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise InvalidConfigurationError(f"Option '{name}' must be a list of strings, got {type(value).__name__}")
    for item in value:
        if not isinstance(item, str):
            raise InvalidConfigurationError(f"Option '{name}' must contain only strings (bad entry {item!r})")
    return list(value)


@dataclass
class ImportOptions:
    """Validated options for one npm import stage."""

    root: str = field(default_factory=os.getcwd)
    prefilter: Prefilter = identity
    alias: Dict[str, str] = field(default_factory=dict)
    shim: Dict[str, str] = field(default_factory=dict)
    include_plugins: bool = False
    prepend: List[str] = field(default_factory=list)
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS

    def __post_init__(self):
        if self.root is None:
            self.root = os.getcwd()
        if not isinstance(self.root, (str, os.PathLike)):
            raise InvalidConfigurationError(f"Option 'root' must be a path, got {type(self.root).__name__}")
        self.root = os.path.abspath(os.fspath(self.root))

        if self.prefilter is None:
            self.prefilter = identity
        if not callable(self.prefilter):
            raise InvalidConfigurationError("Option 'prefilter' must be callable")

        self.alias = _check_str_mapping("alias", self.alias or {})
        self.shim = _check_str_mapping("shim", self.shim or {})
        self.prepend = _check_str_list("prepend", self.prepend or [])
        self.include_plugins = bool(self.include_plugins)

        extensions = _check_str_list("extensions", list(self.extensions or DEFAULT_EXTENSIONS))
        self.extensions = tuple(ext if ext.startswith(".") else f".{ext}" for ext in extensions)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None, **overrides: Any) -> ImportOptions:
        """
        Build options from a mapping, accepting camelCase keys.

        Raises:
            InvalidConfigurationError: On unknown keys or bad values
        """
        merged: Dict[str, Any] = {}
        for key, value in dict(data or {}, **overrides).items():
            merged[_KEY_ALIASES.get(key, key)] = value

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(merged) - known)
        if unknown:
            raise InvalidConfigurationError(f"Unknown option(s): {', '.join(unknown)}")
        return cls(**merged)

    @classmethod
    def from_yaml(cls, path: str, **overrides: Any) -> ImportOptions:
        """
        Load options from a YAML file.

        A relative `root` is taken relative to the YAML file's directory.
        `prefilter` cannot be expressed in YAML; pass it as an override.
        """
        config_path = Path(path)
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InvalidConfigurationError(f"{config_path}: top level must be a mapping")
        if "prefilter" in data:
            raise InvalidConfigurationError(f"{config_path}: 'prefilter' cannot be set from YAML")

        root = data.get("root")
        if root is not None and not os.path.isabs(str(root)):
            data["root"] = str((config_path.parent / str(root)).resolve())
        elif root is None:
            data["root"] = str(config_path.parent.resolve())
        return cls.from_mapping(data, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view (everything except the prefilter)."""
        return {
            "root": self.root,
            "alias": dict(self.alias),
            "shim": dict(self.shim),
            "include_plugins": self.include_plugins,
            "prepend": list(self.prepend),
            "extensions": list(self.extensions),
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict())


__all__ = ["DEFAULT_EXTENSIONS", "ImportOptions", "Prefilter", "identity"]
