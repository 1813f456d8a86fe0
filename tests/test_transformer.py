"""
Unit tests for amdcore/transformer.py - define() emission and the hook.
"""
import pytest

from amdcore.config import TransformOptions
from amdcore.detector import ModuleShape, detect_module
from amdcore.errors import PathFormatError, TransformError
from amdcore.transformer import (
    SOURCE_COMMENT,
    AmdTransformer,
    TransformHook,
    add_default_export_return,
    is_balanced,
    is_valid_amd,
    normalize_body,
    rewrite_exports,
    strip_iife,
)


@pytest.fixture
def transformer():
    return AmdTransformer()


class TestExistingModules:
    """Tests for naming define() calls that are already AMD."""

    def test_unnamed_module_gets_identifier(self, transformer):
        """An anonymous define() gains the module identifier."""
        code = 'define(["a","b"], function(dep0, dep1) { return 1; });'
        result = transformer.transform(code, "mod_x/y")
        assert result.code == 'define("mod_x/y", ["a","b"], function(dep0, dep1) {\n    return 1;\n});'
        assert result.shape is ModuleShape.DEPENDENCY_ARRAY
        assert result.dependencies == ["a", "b"]

    def test_existing_name_is_replaced(self, transformer):
        """An old module name is replaced."""
        code = "define('old/name', ['jquery'], function($) {\n    return $;\n});"
        result = transformer.transform(code, "core/new")
        assert result.code.startswith('define("core/new", ["jquery"], function($) {')

    def test_bare_function(self, transformer):
        """A bare function gets an empty dependency array."""
        code = "define(function() {\n    return {};\n});\n"
        result = transformer.transform(code, "core/x")
        assert result.code == 'define("core/x", [], function() {\n    return {};\n});'

    def test_parameters_are_kept_verbatim(self, transformer):
        """Parameter text is copied unchanged."""
        code = "define(['a'], function( A ,unused ) {});"
        assert "function( A ,unused ) {" in transformer.transform(code, "core/x").code

    def test_transform_is_idempotent(self, transformer):
        """Transforming the output again changes nothing."""
        code = "define(['a'], function(a) {\n        if (a) {\n            return a;\n        }\n});"
        once = transformer.transform(code, "core/x").code
        twice = transformer.transform(once, "core/x").code
        assert once == twice
        assert "    if (a) {\n        return a;\n    }" in once

    def test_transform_existing(self, transformer):
        """transform_existing emits from a detected module."""
        detected = detect_module("define([], function() { return 2; });")
        assert transformer.transform_existing(detected, "core/two") == \
            'define("core/two", [], function() {\n    return 2;\n});'


class TestEsModules:
    """Tests for converting ES modules."""

    def test_default_export_is_returned(self, transformer):
        """The default export becomes the callback's return value."""
        code = "import Foo from 'core/foo';\nexport default Foo;\n"
        result = transformer.transform(code, "mod_x/y")
        assert result.shape is ModuleShape.ES_MODULE
        assert result.code == (
            'define("mod_x/y", ["core/foo"], function(dep0) {\n'
            "    var exports = {};\n"
            "    var Foo = dep0;\n"
            "    exports.default = Foo;\n"
            "    return exports.default;\n"
            "});"
        )

    def test_es_output_is_stable(self, transformer):
        """Converted ES modules are stable under another pass."""
        code = "import Foo from 'core/foo';\nexport default Foo;\n"
        once = transformer.transform(code, "mod_x/y").code
        assert transformer.transform(once, "mod_x/y").code == once

    def test_requires_become_parameters(self, transformer):
        """require calls are replaced by positional parameters."""
        code = "const Ajax = require('core/ajax');\nAjax.call();\n"
        assert transformer.transform_es_module(code, "m_x/y") == (
            'define("m_x/y", ["core/ajax"], function(dep0) {\n'
            "    const Ajax = dep0;\n"
            "    Ajax.call();\n"
            "});"
        )

    def test_named_exports_are_not_exposed(self, transformer):
        """Named exports lose their export keyword only."""
        code = "export const a = 1;\nexport const b = 2;\nexport default a;\n"
        output = transformer.transform(code, "core/x").code
        assert "const b = 2;" in output
        assert "exports.b" not in output
        assert "return exports.default;" in output

    def test_module_without_exports(self, transformer):
        """A module without exports returns nothing."""
        output = transformer.transform("console.log('hi');\n", "core/x").code
        assert output == 'define("core/x", [], function() {\n    console.log(\'hi\');\n});'

    def test_iife_wrapper_is_removed(self, transformer):
        """A wrapper around the whole module is unwrapped."""
        code = "(function() {\n    var x = 1;\n})();\n"
        assert transformer.transform(code, "core/x").code == \
            'define("core/x", [], function() {\n    var x = 1;\n});'

    def test_consecutive_iifes_are_kept(self, transformer):
        """Only a single wrapper around the whole module is unwrapped."""
        code = "(function() { a(); })();\n(function() { b(); })();\n"
        assert transformer.transform(code, "core/x").code == (
            'define("core/x", [], function() {\n'
            "    (function() { a(); })();\n"
            "    (function() { b(); })();\n"
            "});"
        )

    def test_unicode_identifier(self, transformer):
        """Identifiers are emitted without escaping."""
        output = transformer.transform("var x = 1;", "local_café/x").code
        assert output.startswith('define("local_café/x", [], ')

    def test_original_source_decides_the_shape(self, transformer):
        """Detection uses the original source when given."""
        original = "import x from 'x';\nexport default x;\n"
        bundled = "define(['x'], function(x) { return x; });"
        result = transformer.transform(bundled, "core/x", original)
        assert result.shape is ModuleShape.ES_MODULE


class TestFormattingOptions:
    """Tests for TransformOptions."""

    def test_indent_size(self):
        """The body is indented by indent_size spaces."""
        transformer = AmdTransformer(TransformOptions(indent_size=2))
        output = transformer.transform("define([], function() { return 1; });", "core/x").code
        assert "\n  return 1;\n" in output

    def test_no_body_indentation(self):
        """indent_body=False leaves the body flush."""
        transformer = AmdTransformer(TransformOptions(indent_body=False))
        output = transformer.transform("export default 1;", "core/x").code
        assert output.endswith("\nexports.default = 1;\nreturn exports.default;\n});")

    def test_source_comment_only_for_es_modules(self):
        """The source comment marks converted ES modules only."""
        transformer = AmdTransformer(TransformOptions(add_source_comment=True))
        es_output = transformer.transform("var a;", "core/x").code
        amd_output = transformer.transform("define([], function() {});", "core/x").code
        assert f"{{\n    {SOURCE_COMMENT}\n" in es_output
        assert SOURCE_COMMENT not in amd_output


class TestParseDependencies:
    """Tests for reading dependency array literals."""

    @pytest.mark.parametrize("text, expected", [
        ("['core/ajax', \"jquery\",]", ["core/ajax", "jquery"]),
        ("[\n  'a',\n  'b'\n]", ["a", "b"]),
        ("[`a`]", ["a"]),
        ("[]", []),
        ("", []),
        ("[someVar, 'b']", ["b"]),
    ])
    def test_parse(self, transformer, text, expected):
        """Quotes, trailing commas and stray tokens are tolerated."""
        assert transformer.parse_dependencies(text) == expected

    def test_unparseable_gives_empty_list(self, transformer, capsys):
        """An array without strings warns and yields nothing."""
        assert transformer.parse_dependencies("[someVar]", "core/x") == []
        assert "Could not parse dependencies" in capsys.readouterr().err

    def test_non_string_entries_fall_back(self, transformer):
        """Numbers are not dependencies."""
        assert transformer.parse_dependencies("[1, 2]") == []


class TestHelpers:
    """Tests for the module level rewriting helpers."""

    def test_normalize_body(self):
        """Blank lines and common indentation are removed."""
        assert normalize_body("\n\n        a;\n          b;\n\n") == "a;\n  b;"
        assert normalize_body(" a; ") == "a;"
        assert normalize_body("") == ""

    def test_strip_iife_only_when_it_spans_the_code(self):
        """Only a wrapper spanning the whole code is removed."""
        assert strip_iife("(function() { a(); })();") == " a(); "
        assert strip_iife("(function() { a(); }());") == " a(); "
        assert strip_iife("(function() {})();\nb();") == "(function() {})();\nb();"
        assert strip_iife("(function() { a(); })();\n(function() { b(); })();") == \
            "(function() { a(); })();\n(function() { b(); })();"
        assert strip_iife("(function() { var s = '}'; })();") == " var s = '}'; "

    def test_is_balanced(self):
        """Brackets inside strings and comments do not count."""
        assert is_balanced("if (a) { b('}'); } // )")
        assert is_balanced("/* { */ var x = [1, (2)];")
        assert not is_balanced(" a(); })();\n(function() { b(); ")
        assert not is_balanced("(]")
        assert not is_balanced("var s = 'open;")

    def test_rewrite_declarations(self):
        """export is dropped from declarations."""
        code, has_default = rewrite_exports("export const a = 1;\nexport async function b() {}\n")
        assert code == "const a = 1;\nasync function b() {}\n"
        assert has_default is False

    def test_rewrite_named_default_function(self):
        """A named default function is declared, then assigned."""
        code, has_default = rewrite_exports("export default function init() {}\n")
        assert code == "function init() {}\nexports.default = init;"
        assert has_default is True

    def test_rewrite_anonymous_default_class(self):
        """An anonymous default class is assigned directly."""
        code, _ = rewrite_exports("export default class extends Base {}")
        assert code == "exports.default = class extends Base {}"

    def test_rewrite_export_list(self):
        """a as default in an export list becomes an assignment."""
        code, has_default = rewrite_exports("const a = 1;\nexport {a as default, b};\n")
        assert code == "const a = 1;\nexports.default = a;\n"
        assert has_default is True

    def test_rewrite_reexports(self):
        """Re-exports are removed."""
        code, _ = rewrite_exports("export * from 'x';\nexport {y} from 'z';\nvar q;")
        assert code == "var q;"

    def test_default_export_return(self):
        """A return is appended before the closing brace."""
        code = 'define("x", [], function() {\n    exports.default = 1;\n});'
        assert add_default_export_return(code) == \
            'define("x", [], function() {\n    exports.default = 1;\n    return exports.default;\n});'

    def test_babel_exports_object(self):
        """_exports from compiled modules is returned as well."""
        code = (
            'define("x", ["exports"], function(_exports) {\n'
            '    "use strict";\n'
            '    _exports.default = void 0;\n'
            "});"
        )
        assert add_default_export_return(code).endswith("    return _exports.default;\n});")

    def test_define_property_marker(self):
        """Object.defineProperty(exports, "default") counts as a default export."""
        code = 'define("x", [], function() {\n    Object.defineProperty(exports, "default", {value: 1});\n});'
        assert "return exports.default;" in add_default_export_return(code)

    def test_existing_return_is_kept(self):
        """A module that already returns is left alone."""
        code = 'define("x", [], function() {\n    exports.default = 1;\n    return exports.default;\n});'
        assert add_default_export_return(code) == code

    def test_comparison_is_not_a_marker(self):
        """exports.default == x is not an assignment."""
        code = 'define("x", [], function() {\n    if (exports.default == 1) {}\n});'
        assert add_default_export_return(code) == code

    def test_is_valid_amd(self, transformer):
        """Only a named define() call is canonical."""
        assert is_valid_amd(transformer.transform("var a;", "core/x").code)
        assert not is_valid_amd("define([], function() {});")
        assert not is_valid_amd("var a;")


class ExplodingTransformer(AmdTransformer):
    def __init__(self, exc):
        super().__init__()
        self.exc = exc

    def transform(self, code, module_id, original_source=None):
        raise self.exc


class TestTransformHook:
    """Tests for the pipeline hook."""

    def test_unchanged_code_returns_none(self):
        """The hook reports unchanged code as None."""
        hook = TransformHook()
        assert hook('define("core/x", [], function() {\n    return 1;\n});', "core/x") is None

    def test_changed_code_is_returned(self):
        """The hook returns the new code."""
        hook = TransformHook()
        assert hook("var a;", "core/x") == 'define("core/x", [], function() {\n    var a;\n});'

    def test_reads_original_source(self, tmp_path):
        """The hook detects the shape from the source file."""
        source = tmp_path / "x.js"
        source.write_text("define(['a'], function(a) { return a; });", encoding="utf-8")
        hook = TransformHook(str(source))
        assert hook("/* bundled */", "mod_x/y") == \
            'define("mod_x/y", ["a"], function(a) {\n    return a;\n});'

    def test_missing_original_falls_back_to_chunk(self, tmp_path, capsys):
        """An unreadable source falls back to the chunk."""
        hook = TransformHook(str(tmp_path / "missing.js"))
        assert hook("var a;", "core/x") == 'define("core/x", [], function() {\n    var a;\n});'
        assert "Could not read original source" in capsys.readouterr().err

    def test_unexpected_errors_are_wrapped(self):
        """Unexpected exceptions become TransformError."""
        hook = TransformHook(transformer=ExplodingTransformer(ValueError("boom")))
        with pytest.raises(TransformError) as exc_info:
            hook("var a;", "core/x")
        assert exc_info.value.path == "core/x"
        assert "boom" in exc_info.value.message

    def test_build_errors_pass_through(self):
        """Build errors are not wrapped."""
        hook = TransformHook(transformer=ExplodingTransformer(PathFormatError("bad", "p")))
        with pytest.raises(PathFormatError):
            hook("var a;", "core/x")
