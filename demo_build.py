#!/usr/bin/env python3
"""
Demo: Build a stylesheet that imports npm packages.

Writes a tiny project (main.css plus two packages in node_modules) to a
temporary directory, inlines its imports and saves compiled.css with a
source map next to it.
"""

import json
import os
import tempfile

from cssnpm import ProcessOptions, Processor, npm_import
from cssnpm.backends import save_css_file


PROJECT = {
    "main.css": (
        '@import "buttons";\n'
        "@media print {\n"
        '  @import "buttons";\n'
        "}\n"
        ".page {\n"
        "  margin: 0 auto;\n"
        "}\n"
    ),
    "node_modules/buttons/package.json": {"name": "buttons", "style": "dist/buttons.css"},
    "node_modules/buttons/dist/buttons.css": '@import "colors";\n.button {\n  color: var(--primary);\n}\n',
    "node_modules/colors/index.css": ":root {\n  --primary: #0366d6;\n}\n",
}


def write_project(base):
    for rel, content in PROJECT.items():
        path = os.path.join(base, rel)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(json.dumps(content) if isinstance(content, dict) else content)


def main():
    base = tempfile.mkdtemp(prefix="cssnpm-demo-")
    write_project(base)

    entry = os.path.join(base, "main.css")
    out_file = os.path.join(base, "compiled.css")
    with open(entry, encoding="utf-8") as f:
        text = f.read()

    processor = Processor([npm_import(root=base)])
    result = processor.process_sync(
        text,
        ProcessOptions(from_path=entry, to_path=out_file, label="main.css", map=True),
    )

    print("=" * 80)
    print("NPM IMPORT DEMO")
    print("=" * 80)
    print(result.css)
    print("-" * 80)
    print("Sources in map:")
    for source in result.map.sources:
        print(f"  {source}")

    save_css_file(result.root, out_file, source_map=True)
    print(f"\nSaved to: {out_file} (+ .map)")
    print("=" * 80)


if __name__ == "__main__":
    main()
