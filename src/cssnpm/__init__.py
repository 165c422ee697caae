"""
cssnpm: npm-style @import resolution and inlining for stylesheets.

Given a parsed stylesheet, cssnpm finds every @import whose target is a
package name or a relative path, locates the file the way Node resolves
modules (node_modules walk, package.json "style" field, shims, aliases),
and splices its contents in place, recursively. URL imports are left
alone; a file already imported in the same scope is dropped.

Typical use:

    from cssnpm import Processor, ProcessOptions, npm_import

    result = Processor([npm_import(root="styles")]).process_sync(
        '@import "normalize.css";', ProcessOptions(from_path="main.css")
    )
    print(result.css)

The tree, the parser and the CSS generator live here too, but only as
far as the import stage needs them.
"""

__version__ = "0.1.0"

from cssnpm.config import ImportOptions
from cssnpm.errors import (
    AliasRecursionError,
    CssNpmError,
    InvalidConfigurationError,
    UnresolvableImportError,
)
from cssnpm.parser import StylesheetParseError, parse_stylesheet
from cssnpm.processor import NpmImport, Plugin, ProcessOptions, ProcessResult, Processor, npm_import

__all__ = [
    "AliasRecursionError",
    "CssNpmError",
    "ImportOptions",
    "InvalidConfigurationError",
    "NpmImport",
    "Plugin",
    "ProcessOptions",
    "ProcessResult",
    "Processor",
    "StylesheetParseError",
    "UnresolvableImportError",
    "npm_import",
    "parse_stylesheet",
]
