"""
Shared fixtures: a throwaway project tree with node_modules packages.

Layout written by `project`:

    test.css                          .test (Test file)
    styles/index.css                  .test (Test file)
    styles/index-unfiltered.css       needs the $replaceThis prefilter
    styles/nested-unfiltered.css      imports ./index-unfiltered.css
    node_modules/test/                index.css (Test package)
    node_modules/custom/              package.json style -> custom.css
    node_modules/nested/              imports "test", has its own node_modules/test
    node_modules/shimmed/             style -> main.css, alternative styles.css
    node_modules/pkga/                style -> main.css, alternative alt.css
    node_modules/sassy/               style -> index.scss
"""

import json
from pathlib import Path

import pytest

from cssnpm.processor import ProcessOptions, Processor, npm_import


TEST_FILE = '.test {\n  content: "Test file";\n}'

FILES = {
    "test.css": TEST_FILE + "\n",
    "styles/index.css": TEST_FILE + "\n",
    "styles/index-unfiltered.css": '.test {\n  $replaceThis: "Test file";\n}\n',
    "styles/nested-unfiltered.css": '@import "./index-unfiltered.css";\n',
    "node_modules/test/index.css": '.test {\n    content: "Test package";\n}\n',
    "node_modules/custom/package.json": {"name": "custom", "style": "custom.css"},
    "node_modules/custom/custom.css": '.custom {\n  content: "Custom package";\n}\n',
    "node_modules/nested/index.css": '@import "test";\n',
    "node_modules/nested/node_modules/test/index.css": '.test {\n  content: "From nested test package";\n}\n',
    "node_modules/shimmed/package.json": {"name": "shimmed", "style": "main.css"},
    "node_modules/shimmed/main.css": '.wrong {\n  content: "Not shimmed";\n}\n',
    "node_modules/shimmed/styles.css": '.shimmed {\n  content: "Shimmed package";\n}\n',
    "node_modules/pkga/package.json": {"name": "pkgA", "style": "main.css"},
    "node_modules/pkga/main.css": ".main {\n  color: red;\n}\n",
    "node_modules/pkga/alt.css": ".alt {\n  color: blue;\n}\n",
    "node_modules/sassy/package.json": {"name": "sassy", "style": "index.scss"},
    "node_modules/sassy/index.scss": "$color: red;\n.bashful {\n  color: $color;\n}\n",
}


def write_tree(base: Path, files: dict) -> None:
    for rel, content in files.items():
        path = base / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, dict):
            content = json.dumps(content)
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Project tree in a temp dir, which also becomes the cwd."""
    write_tree(tmp_path, FILES)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def run_npm(text, options=None, **process_kwargs):
    """Process `text` through a pipeline holding only the npm import stage."""
    process_kwargs.setdefault("from_path", "index.css")
    processor = Processor([npm_import(options or {})])
    return processor.process_sync(text, ProcessOptions(**process_kwargs))
