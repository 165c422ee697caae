"""
Command line entry point: inline package @imports of one stylesheet.

    cssnpm main.css -o compiled.css --map
    cssnpm main.css --alias tree=styles/index.css --shim pkg=alt.css
    cssnpm main.css --config cssnpm.yml
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

from cssnpm import __version__
from cssnpm.backends import save_css_file
from cssnpm.config import ImportOptions
from cssnpm.errors import CssNpmError
from cssnpm.processor import ProcessOptions, Processor, npm_import


def _pairs(values: Optional[List[str]], flag: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for value in values or []:
        name, sep, target = value.partition("=")
        if not sep or not name or not target:
            raise CssNpmError(f"{flag} expects NAME=PATH, got '{value}'")
        result[name] = target
    return result


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cssnpm",
        description="Inline npm-style @import directives into a single stylesheet",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("input", help="stylesheet to process")
    p.add_argument("-o", "--output", help="write result here instead of stdout")
    p.add_argument("--root", help="base directory for aliases and source labels (default: cwd)")
    p.add_argument("--config", metavar="YAML", help="load options from a YAML file")
    p.add_argument("--alias", action="append", metavar="NAME=PATH", help="alias a logical name (repeatable)")
    p.add_argument("--shim", action="append", metavar="PKG=FILE", help="override a package entry file (repeatable)")
    p.add_argument("--prepend", action="append", metavar="TARGET", help="import TARGET before the input (repeatable)")
    p.add_argument("--map", action="store_true", help="write a source map next to --output")
    p.add_argument("-v", "--verbose", action="store_true", help="log resolution steps to stderr")
    return p


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logger = logging.getLogger("cssnpm")
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def _options(ns: argparse.Namespace) -> ImportOptions:
    overrides = {}
    if ns.root:
        overrides["root"] = ns.root
    if ns.alias:
        overrides["alias"] = _pairs(ns.alias, "--alias")
    if ns.shim:
        overrides["shim"] = _pairs(ns.shim, "--shim")
    if ns.prepend:
        overrides["prepend"] = ns.prepend
    if ns.config:
        return ImportOptions.from_yaml(ns.config, **overrides)
    return ImportOptions.from_mapping(overrides)


def main(argv: Optional[List[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)
    _configure_logging(ns.verbose)

    if ns.map and not ns.output:
        sys.stderr.write("--map requires --output\n")
        return 2

    try:
        with open(ns.input, encoding="utf-8-sig") as f:
            text = f.read()
        options = _options(ns)
        label = os.path.relpath(ns.input, options.root).replace(os.sep, "/")
        processor = Processor([npm_import(options)])
        result = processor.process_sync(
            text, ProcessOptions(from_path=ns.input, to_path=ns.output, label=label)
        )
    except (CssNpmError, OSError, UnicodeDecodeError) as e:
        sys.stderr.write(str(e).rstrip() + "\n")
        return 1

    if not ns.output:
        sys.stdout.write(result.css + "\n")
        return 0

    save_css_file(result.root, ns.output, source_map=ns.map)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
