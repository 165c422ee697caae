"""
Stylesheet processing pipeline.

A Processor owns an ordered list of plugins. Processing text means:
    parse (ProcessOptions.parser) → run each plugin on the document →
    generate CSS (and a source map when requested).

NpmImport is the plugin that inlines package @imports. For every file it
inlines, it runs that file through a nested Processor built from the host
pipeline: only the NpmImport stages by default, every plugin with
`include_plugins`. The nested run receives an ImportContext carrying the
shared ResolutionScope, which is how dedup state reaches every level
without any module-level state.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Mapping, Optional, Sequence

from cssnpm.backends.css_generator import generate_css, generate_css_with_map
from cssnpm.backends.sourcemap import SourceMap
from cssnpm.config import ImportOptions
from cssnpm.errors import InvalidConfigurationError
from cssnpm.inliner import Inliner, QueuedImport
from cssnpm.model import SourceLocation, StylesheetDocument
from cssnpm.parser import parse_stylesheet
from cssnpm.scope import GLOBAL_KEY, ResolutionScope


logger = logging.getLogger(__name__)

Parser = Callable[[str, Optional[SourceLocation]], StylesheetDocument]


@dataclass(frozen=True)
class ImportContext:
    """Dedup state handed from an enclosing import pass to a nested one."""

    scope: ResolutionScope
    scope_key: str = GLOBAL_KEY


@dataclass
class ProcessOptions:
    """
    Options for one Processor.process call.

    Properties:
        from_path: Input file name (relative paths are taken from cwd)
        to_path: Output file name, recorded in the source map
        map: Whether to build a source map
        parser: Text → document callable, reused for nested imports
        label: Display name of the input in source maps (defaults to from_path)
        import_context: Set only on nested runs started by NpmImport
    """

    from_path: Optional[str] = None
    to_path: Optional[str] = None
    map: bool = False
    parser: Parser = parse_stylesheet
    label: Optional[str] = None
    import_context: Optional[ImportContext] = None

    @property
    def nested(self) -> bool:
        return self.import_context is not None

    def source(self) -> SourceLocation:
        path = os.path.abspath(self.from_path) if self.from_path else None
        return SourceLocation(path=path, label=self.label or self.from_path)


@dataclass
class ProcessResult:
    """Outcome of Processor.process."""

    processor: Processor
    options: ProcessOptions
    root: StylesheetDocument
    css: str = ""
    map: Optional[SourceMap] = None


class Plugin(ABC):
    """A pipeline stage: mutates the document in place."""

    name: str = "plugin"

    @abstractmethod
    async def run(self, document: StylesheetDocument, result: ProcessResult) -> None:
        ...


class Processor:
    """An ordered list of plugins applied to parsed stylesheets."""

    def __init__(self, plugins: Optional[Sequence[Plugin]] = None):
        if plugins is None:
            plugins = []
        if not isinstance(plugins, (list, tuple)):
            raise InvalidConfigurationError(
                f"plugins must be a list or tuple, got {type(plugins).__name__}"
            )
        for plugin in plugins:
            if not isinstance(plugin, Plugin):
                raise InvalidConfigurationError(f"Not a plugin: {plugin!r}")
        self.plugins: List[Plugin] = list(plugins)

    def use(self, plugin: Plugin) -> Processor:
        if not isinstance(plugin, Plugin):
            raise InvalidConfigurationError(f"Not a plugin: {plugin!r}")
        self.plugins.append(plugin)
        return self

    async def process(self, text: str, options: Optional[ProcessOptions] = None) -> ProcessResult:
        """
        Parse `text`, run every plugin, and generate the output.

        Raises:
            CssNpmError: Any error from parsing or from a plugin aborts
                the whole run
        """
        options = options or ProcessOptions()
        document = options.parser(text, options.source())
        result = ProcessResult(processor=self, options=options, root=document)

        for plugin in self.plugins:
            await plugin.run(document, result)

        if options.nested:
            return result
        if options.map:
            result.css, result.map = generate_css_with_map(
                document, file=os.path.basename(options.to_path) if options.to_path else None
            )
        else:
            result.css = generate_css(document)
        return result

    def process_sync(self, text: str, options: Optional[ProcessOptions] = None) -> ProcessResult:
        """Run process() to completion on a fresh event loop."""
        return asyncio.run(self.process(text, options))


class NpmImport(Plugin):
    """Inlines @import directives that name packages or relative files."""

    name = "cssnpm"

    def __init__(self, options: Optional[ImportOptions] = None):
        self.options = options or ImportOptions()

    def nested_processor(self, host: Processor) -> Processor:
        if self.options.include_plugins:
            return Processor(host.plugins)
        return Processor([p for p in host.plugins if isinstance(p, NpmImport)])

    def prepend_imports(self, document: StylesheetDocument, parser: Parser) -> None:
        if not self.options.prepend:
            return
        text = "\n".join(f'@import "{target}";' for target in self.options.prepend)
        document.prepend(parser(text, SourceLocation()))

    async def run(self, document: StylesheetDocument, result: ProcessResult) -> None:
        context = result.options.import_context
        if context is None:
            self.prepend_imports(document, result.options.parser)
            context = ImportContext(scope=ResolutionScope())

        host = result.processor
        parent_options = result.options
        logger.debug("Import pass over %s (scope %r)", document.source.label or "<input css>", context.scope_key)

        async def expand(item: QueuedImport, scope: ResolutionScope) -> StylesheetDocument:
            nested_options = replace(
                parent_options,
                from_path=item.path,
                label=item.label,
                map=False,
                import_context=ImportContext(scope=scope, scope_key=item.scope_key),
            )
            nested = await self.nested_processor(host).process(item.contents, nested_options)
            return nested.root

        inliner = Inliner(self.options, expand)
        await inliner.inline(context.scope, document, base_key=context.scope_key)


def npm_import(options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> NpmImport:
    """
    Build an NpmImport plugin from a mapping and/or keyword options.

    Example:
        Processor([npm_import(alias={"tree": "styles/index.css"})])
    """
    if isinstance(options, ImportOptions):
        if kwargs:
            raise InvalidConfigurationError("Pass either ImportOptions or keyword options, not both")
        return NpmImport(options)
    return NpmImport(ImportOptions.from_mapping(options, **kwargs))


__all__ = [
    "ImportContext",
    "NpmImport",
    "Parser",
    "Plugin",
    "ProcessOptions",
    "ProcessResult",
    "Processor",
    "npm_import",
]
