"""
Error hierarchy for cssnpm.

Every expected failure (a missing package, a malformed option, a broken
stylesheet) derives from CssNpmError so callers can report it as a clean
message. Anything else is a bug and propagates with its traceback.
"""

from __future__ import annotations

from typing import Optional


class CssNpmError(Exception):
    """Base class for all user-facing cssnpm errors."""
    pass


class UnresolvableImportError(CssNpmError):
    """
    Raised when an @import target cannot be turned into a readable file.

    Covers both lookup failures (no matching file or package) and I/O
    failures while reading a file that did resolve. Either one fails the
    whole pass.
    """

    def __init__(self, target: str, basedir: Optional[str] = None, reason: str = ""):
        self.target = target
        self.basedir = basedir
        self.reason = reason
        message = f"Cannot resolve @import '{target}'"
        if basedir:
            message += f" from '{basedir}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InvalidConfigurationError(CssNpmError, TypeError):
    """Raised at setup time when an option has the wrong shape."""
    pass


class AliasRecursionError(CssNpmError):
    """Raised when alias expansion exceeds its depth bound."""
    pass
