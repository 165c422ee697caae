"""
End-to-end tests for the npm import stage.

Each test runs stylesheet text through a Processor holding the npm import
plugin, against the project tree built in conftest.py, and checks the
generated CSS.
"""

import time
from pathlib import Path

import pytest

from conftest import run_npm, write_tree
from cssnpm import inliner
from cssnpm.errors import UnresolvableImportError
from cssnpm.model import SourceLocation
from cssnpm.parser import parse_stylesheet
from cssnpm.processor import Plugin, ProcessOptions, Processor, npm_import


TEST_PACKAGE = '.test {\n  content: "Test package";\n}'
TEST_FILE = '.test {\n  content: "Test file";\n}'
CUSTOM_PACKAGE = '.custom {\n  content: "Custom package";\n}'


def css_of(text, options=None, **kwargs):
    return run_npm(text, options, **kwargs).css.strip()


class TestBasicImports:
    """Relative files and packages."""

    def test_import_relative_source_file(self, project):
        """Should inline a relative file."""
        assert css_of('@import "./test";', from_path="file.css") == TEST_FILE

    def test_import_relative_single_quoted(self, project):
        """Should accept single quotes."""
        assert css_of("@import './test';") == TEST_FILE

    def test_import_package(self, project):
        """Should inline a package's index.css."""
        assert css_of('@import "test";') == TEST_PACKAGE

    def test_import_package_with_custom_style_file(self, project):
        """Should inline a package's style entry."""
        assert css_of('@import "custom";') == CUSTOM_PACKAGE

    def test_import_files_imported_from_imported_package(self, project):
        """Should prefer the nested package's own node_modules."""
        assert css_of('@import "nested";') == '.test {\n  content: "From nested test package";\n}'

    def test_two_imports_keep_source_order(self, project):
        """Should keep sibling imports in source order."""
        result = css_of('@import "custom";\n@import "./test";')
        assert result == CUSTOM_PACKAGE + "\n\n" + TEST_FILE

    def test_rules_around_imports_stay_in_place(self, project):
        """Should keep surrounding rules in place."""
        result = css_of('.before {\n  a: 1;\n}\n@import "./test";\n.after {\n  b: 2;\n}')
        assert result == ".before {\n  a: 1;\n}\n\n" + TEST_FILE + "\n\n.after {\n  b: 2;\n}"


class TestScopes:
    """Deduplication per conditional group."""

    def test_same_import_twice_expands_once(self, project):
        """Should inline a repeated import once."""
        assert css_of('@import "test";\n@import "test";') == TEST_PACKAGE

    def test_same_file_through_different_names_expands_once(self, project):
        """Should dedup one file reached through two spellings."""
        result = css_of('@import "./node_modules/test/index.css";\n@import "test";')
        assert result == TEST_PACKAGE

    def test_import_package_in_media(self, project):
        """Should inline once per media query."""
        text = (
            '@media (min-width: 320px) {@import "test";}'
            '@media (min-width: 640px) {@import "test";}'
        )
        expected = (
            "@media (min-width: 320px) {\n"
            "  .test {\n"
            '    content: "Test package";\n'
            "  }\n"
            "}\n"
            "\n"
            "@media (min-width: 640px) {\n"
            "  .test {\n"
            '    content: "Test package";\n'
            "  }\n"
            "}"
        )
        assert css_of(text) == expected

    def test_outer_scope_import_suppresses_media_import(self, project):
        """Should skip a media import already imported globally."""
        text = '@import "test";\n@media (min-width: 320px) { @import "test"; }'
        assert css_of(text) == TEST_PACKAGE + "\n\n@media (min-width: 320px) {}"

    def test_same_condition_twice_expands_once(self, project):
        """Should inline once under the same condition."""
        text = (
            '@media print { @import "test"; }\n'
            '@media print { @import "test"; }'
        )
        expected = (
            "@media print {\n"
            "  .test {\n"
            '    content: "Test package";\n'
            "  }\n"
            "}\n"
            "\n"
            "@media print {}"
        )
        assert css_of(text) == expected

    def test_media_import_does_not_suppress_later_top_level_import(self, project):
        """Should still inline globally after a media import."""
        text = '@media print { @import "test"; }\n@import "test";'
        result = css_of(text)
        assert result.count('content: "Test package"') == 2

    def test_nested_file_inherits_condition_of_its_import(self, project):
        """Should scope a nested file's imports to its @media."""
        write_tree(project, {
            "wrap.css": '@import "./test.css";\n',
            "wrap2.css": '@import "./test.css";\n',
        })
        text = '@media print { @import "./wrap.css"; }\n@import "./wrap2.css";'
        result = css_of(text)
        assert result.count('content: "Test file"') == 2

    def test_import_cycle_terminates(self, project):
        """Should stop at an import cycle."""
        write_tree(project, {
            "a.css": '@import "./b.css";\n.a {\n  x: 1;\n}\n',
            "b.css": '@import "./a.css";\n.b {\n  y: 2;\n}\n',
        })
        assert css_of('@import "./a.css";') == ".b {\n  y: 2;\n}\n\n.a {\n  x: 1;\n}"

    def test_shared_import_kept_at_first_occurrence(self, project):
        """Should keep a shared import at its first occurrence."""
        write_tree(project, {
            "a.css": '@import "./shared.css";\n.a {\n  x: 1;\n}\n',
            "b.css": '@import "./shared.css";\n.b {\n  y: 2;\n}\n',
            "shared.css": ".shared {\n  z: 3;\n}\n",
        })
        result = css_of('@import "./a.css";\n@import "./b.css";')
        assert result == ".shared {\n  z: 3;\n}\n\n.a {\n  x: 1;\n}\n\n.b {\n  y: 2;\n}"


class TestUrlImports:
    """Absolute URLs pass through untouched."""

    def test_skip_absolute_urls(self, project):
        """Should leave absolute URLs untouched."""
        text = '@import "http://example.com/example.css";'
        assert css_of(text) == text

    def test_skip_imports_using_url(self, project):
        """Should leave url() imports untouched."""
        text = "@import url(test.css);"
        assert css_of(text) == text


class TestOrdering:
    """Output order follows source order, not I/O completion order."""

    def test_slow_first_import_still_comes_first(self, project, monkeypatch):
        """Should keep source order when reads finish out of order."""
        write_tree(project, {
            "a.css": ".a {\n  order: 1;\n}\n",
            "b.css": ".b {\n  order: 2;\n}\n",
        })
        original = inliner._read_text

        def slow_read(path):
            if path.endswith("a.css"):
                time.sleep(0.05)
            return original(path)

        monkeypatch.setattr(inliner, "_read_text", slow_read)
        result = css_of('@import "./a.css";\n@import "./b.css";')
        assert result == ".a {\n  order: 1;\n}\n\n.b {\n  order: 2;\n}"

    def test_transitive_imports_expand_in_place(self, project):
        """Should expand nested imports before later siblings."""
        write_tree(project, {
            "one.css": '.one-before {\n  a: 1;\n}\n@import "./two.css";\n.one-after {\n  b: 2;\n}\n',
            "two.css": ".two {\n  c: 3;\n}\n",
        })
        result = css_of('@import "./one.css";\n.after {\n  d: 4;\n}')
        assert result == (
            ".one-before {\n  a: 1;\n}\n\n"
            ".two {\n  c: 3;\n}\n\n"
            ".one-after {\n  b: 2;\n}\n\n"
            ".after {\n  d: 4;\n}"
        )


class TestSourceInfo:
    """Source files, labels and maps of inlined nodes."""

    def test_include_source_file_names(self, project):
        """Should record the source file of inlined nodes."""
        result = run_npm('@import "test";')
        source = result.root.nodes[0].source
        assert Path(source.path).resolve() == (project / "node_modules" / "test" / "index.css").resolve()
        assert source.label == "node_modules/test/index.css"

    def test_labels_relative_to_root(self, project):
        """Should label sources relative to root."""
        (project / "sub").mkdir()
        result = run_npm('@import "test";', {"root": str(project / "sub")})
        assert result.root.nodes[0].source.label == "../node_modules/test/index.css"

    def test_include_source_maps(self, project):
        """Should map rules back to the package file."""
        result = run_npm('@import "test";', map=True)
        assert result.map.original_position_for(1, 0) == {
            "source": "node_modules/test/index.css", "line": 1, "column": 0,
        }

    def test_include_source_maps_for_declarations(self, project):
        """Should map declarations back to the package file."""
        result = run_npm('@import "test";', map=True)
        assert result.map.original_position_for(2, 2) == {
            "source": "node_modules/test/index.css", "line": 2, "column": 4,
        }

    def test_map_not_built_by_default(self, project):
        """Should build no map unless asked."""
        assert run_npm('@import "test";').map is None


class TestOptions:
    """shim, alias, prefilter, prepend, include_plugins."""

    def test_use_shim_config_option(self, project):
        """Should use the shim entry."""
        result = css_of('@import "shimmed";', {"shim": {"shimmed": "styles.css"}})
        assert result == '.shimmed {\n  content: "Shimmed package";\n}'

    def test_shim_overrides_declared_style(self, project):
        """Should prefer the shim over the style field."""
        assert css_of('@import "pkga";') == ".main {\n  color: red;\n}"
        assert css_of('@import "pkga";', {"shim": {"pkgA": "alt.css"}}) == ".alt {\n  color: blue;\n}"

    def test_use_alias_config_option(self, project):
        """Should resolve an aliased name."""
        assert css_of('@import "tree";', {"alias": {"tree": "styles/index.css"}}) == TEST_FILE

    def test_import_index_file_in_aliased_directory(self, project):
        """Should find index.css in an aliased directory."""
        assert css_of('@import "util";', {"alias": {"util": "styles"}}) == TEST_FILE

    def test_import_file_in_aliased_directory(self, project):
        """Should find a file in an aliased directory."""
        assert css_of('@import "util/index";', {"alias": {"util": "styles"}}) == TEST_FILE

    def test_prefilter_input(self, project):
        """Should apply the prefilter before parsing."""
        def replacer(code, file_path):
            return code.replace("$replaceThis", "content")

        result = css_of('@import "./styles/index-unfiltered.css";', {"prefilter": replacer})
        assert result == TEST_FILE

    def test_prefilter_nested_includes(self, project):
        """Should prefilter nested imports too."""
        def replacer(code, file_path):
            return code.replace("$replaceThis", "content")

        result = css_of('@import "./styles/nested-unfiltered.css";', {"prefilter": replacer})
        assert result == TEST_FILE

    def test_prefilter_receives_file_path(self, project):
        """Should pass the file path to the prefilter."""
        def render_sass(code, file_path):
            if file_path.endswith(".scss"):
                return code.replace("$color: red;\n", "").replace("$color", "red")
            return code

        assert css_of('@import "sassy";', {"prefilter": render_sass}) == ".bashful {\n  color: red;\n}"

    def test_prepend_imports(self, project):
        """Should inline prepended imports first."""
        result = css_of(".basic-css{property:value;}", {"prepend": ["test", "custom"]})
        assert result == TEST_PACKAGE + "\n\n" + CUSTOM_PACKAGE + "\n\n.basic-css {\n  property: value;\n}"

    def test_prepend_only_applies_to_outermost_document(self, project):
        """Should not prepend into nested files."""
        write_tree(project, {"plain.css": ".plain {\n  a: 1;\n}\n"})
        result = css_of('@import "./plain.css";', {"prepend": ["custom"]})
        assert result == CUSTOM_PACKAGE + "\n\n.plain {\n  a: 1;\n}"

    def test_same_parser_used_for_imports(self, project):
        """Should parse imports with the caller's parser."""
        seen = []

        def parser(text, source=None):
            seen.append(source.label)
            return parse_stylesheet(text, source)

        result = run_npm('@import "test";', parser=parser)
        assert result.css.strip() == TEST_PACKAGE
        assert seen == ["index.css", "node_modules/test/index.css"]


class RecordingPlugin(Plugin):
    name = "recorder"

    def __init__(self):
        self.labels = []

    async def run(self, document, result):
        self.labels.append(document.source.label)


class TestIncludePlugins:
    """Nested imports run either only this stage or the whole pipeline."""

    def test_nested_imports_skip_other_plugins_by_default(self, project):
        """Should run only the import stage on nested files."""
        recorder = RecordingPlugin()
        processor = Processor([npm_import(), recorder])
        processor.process_sync('@import "test";', ProcessOptions(from_path="index.css"))
        assert recorder.labels == ["index.css"]

    def test_nested_imports_run_whole_pipeline_with_include_plugins(self, project):
        """Should run every plugin on nested files when asked."""
        recorder = RecordingPlugin()
        processor = Processor([npm_import(include_plugins=True), recorder])
        processor.process_sync('@import "test";', ProcessOptions(from_path="index.css"))
        assert recorder.labels == ["node_modules/test/index.css", "index.css"]

    def test_camel_case_option_name_accepted(self, project):
        """Should accept includePlugins."""
        recorder = RecordingPlugin()
        processor = Processor([npm_import({"includePlugins": True}), recorder])
        processor.process_sync('@import "test";', ProcessOptions(from_path="index.css"))
        assert len(recorder.labels) == 2


class TestFailures:
    """Any unresolvable import fails the whole pass."""

    def test_missing_package_raises(self, project):
        """Should fail on a missing package."""
        with pytest.raises(UnresolvableImportError) as exc_info:
            run_npm('@import "does-not-exist";')
        assert exc_info.value.target == "does-not-exist"

    def test_missing_relative_file_raises(self, project):
        """Should fail on a missing relative file."""
        with pytest.raises(UnresolvableImportError):
            run_npm('@import "./nope.css";')

    def test_failure_in_nested_file_fails_pass(self, project):
        """Should fail when a nested import fails."""
        write_tree(project, {"broken.css": '@import "missing-package";\n'})
        with pytest.raises(UnresolvableImportError):
            run_npm('@import "test";\n@import "./broken.css";')

    def test_one_failure_among_siblings_fails_pass(self, project):
        """Should fail when one sibling fails."""
        with pytest.raises(UnresolvableImportError):
            run_npm('@import "test";\n@import "./nope.css";\n@import "custom";')

    def test_conditional_import_rejected(self, project):
        """Should reject imports with media conditions."""
        with pytest.raises(UnresolvableImportError):
            run_npm('@import "test" screen;')

    def test_unreadable_file_raises(self, project, monkeypatch):
        """Should report read errors as unresolvable."""
        def failing_read(path):
            raise PermissionError(13, "Permission denied", path)

        monkeypatch.setattr(inliner, "_read_text", failing_read)
        with pytest.raises(UnresolvableImportError):
            run_npm('@import "test";')

    def test_undecodable_file_raises(self, project):
        """Should report a file that is not valid UTF-8 as unresolvable."""
        (project / "bad.css").write_bytes(b".bad {\n  a: b;\n}\n\xff\xfe")
        with pytest.raises(UnresolvableImportError) as exc_info:
            run_npm('@import "./bad.css";')
        assert exc_info.value.target.endswith("bad.css")


class TestByteOrderMark:
    """Files saved with a UTF-8 BOM."""

    def test_bom_before_import(self, project):
        """Should inline imports of a file whose BOM precedes an @import."""
        (project / "bom.css").write_bytes(b'\xef\xbb\xbf@import "./test.css";\n')
        assert css_of('@import "./bom.css";') == TEST_FILE

    def test_bom_before_rule(self, project):
        """Should not carry the BOM into the output."""
        (project / "bom.css").write_bytes(b"\xef\xbb\xbf.x {\n  a: b;\n}\n")
        assert css_of('@import "./bom.css";') == ".x {\n  a: b;\n}"


def test_anonymous_input_resolves_from_root(project):
    """Should resolve from root without a source file."""
    processor = Processor([npm_import(root=str(project))])
    result = processor.process_sync('@import "test";', ProcessOptions(
        from_path=None, label=None,
    ))
    assert result.css == TEST_PACKAGE
    assert result.root.source == SourceLocation()
