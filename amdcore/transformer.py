"""
AMD transformation - rewrites a module into the canonical define() call.

Both input kinds end up in ``format_module``:

    define("<component>/<file>", ["dep", ...], function(<params>) {
        <body>
    });

Existing define() calls keep their parameters and body and only gain the
module identifier. ES modules lose their import/export syntax; the
dependencies become positional parameters ``dep0, dep1, ...``.

After emission a module that sets ``exports.default`` returns that value
from its callback. The host loader hands the callback's return value to
dependants as the module itself, so a default export must not arrive
wrapped in an object. All other named exports of such a module are lost.
"""
import json
import re
import textwrap
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from amdcore.config import TransformOptions
from amdcore.console import debug_log, warn
from amdcore.detector import ExistingLoaderModule, ModuleShape, detect_module
from amdcore.errors import AmdBuildError, DependencyParseError, TransformError
from amdcore.extractor import (
    IDENTIFIER,
    STATEMENT_END,
    binding_declarations,
    extract_dependencies,
    replace_requires,
    strip_imports,
)

_QUOTED = r"(['\"`])[^'\"`]+\1"

REEXPORT_PATTERN = re.compile(
    r"(?<![\w$.])export\s*(?:\*\s*(?:as\s+" + IDENTIFIER + r"\s*)?|\{[^}]*\}\s*)from\s*"
    + _QUOTED + STATEMENT_END
)
EXPORT_LIST_PATTERN = re.compile(r"(?<![\w$.])export\s*\{(?P<names>[^}]*)\}" + STATEMENT_END)
EXPORT_DEFAULT_DECLARATION_PATTERN = re.compile(
    r"(?<![\w$.])export\s+default\s+(?=(?:async\s+)?function\s*\*?\s*(?P<fname>" + IDENTIFIER + r")\s*\("
    r"|class\s+(?!extends\b)(?P<cname>" + IDENTIFIER + r"))"
)
EXPORT_DEFAULT_PATTERN = re.compile(r"(?<![\w$.])export\s+default\s+")
EXPORT_DECLARATION_PATTERN = re.compile(
    r"(?<![\w$.])export\s+(?=(?:var|let|const|function|class|async)\b)"
)
EXPORTS_REFERENCE_PATTERN = re.compile(r"(?<![\w$.])exports\.")
EXPORTS_DECLARATION_PATTERN = re.compile(r"\b(?:var|let|const)\s+exports\b")

IIFE_PATTERN = re.compile(
    r"\A\s*\(\s*function\s*\([^)]*\)\s*\{(?P<body>[\s\S]*)\}\s*"
    r"(?:\)\s*\([^)]*\)|\([^)]*\)\s*\))\s*;?\s*\Z"
)

DEFAULT_EXPORT_MARKER_PATTERN = re.compile(
    r"Object\.defineProperty\s*\(\s*(?P<defined>_?exports)\s*,\s*['\"]default['\"]"
    r"|(?<![\w$.])(?P<assigned>_?exports)\.default\s*=(?!=)"
)
CALLBACK_END_PATTERN = re.compile(r"\}\s*\)\s*;?\s*\Z")

CANONICAL_PATTERN = re.compile(
    r"define\s*\(\s*[\"'][^\"']*[\"']\s*,\s*\[.*?\]\s*,\s*function\s*\([^)]*\)\s*\{[\s\S]*\}\s*\)\s*;?\s*\Z",
    re.S,
)

SOURCE_COMMENT = "// Transformed from ES6 module"


class TransformResult(BaseModel):
    """Emitted code plus what went into it."""
    model_config = ConfigDict(frozen=True)

    code: str
    module_id: str
    shape: ModuleShape
    dependencies: List[str]


def normalize_body(body: str) -> str:
    """Remove surrounding blank lines and the body's common indentation.

    Text on the same line as the opening brace is taken as-is; the
    following lines are dedented among themselves. Re-indenting the result
    therefore does not drift when a module is transformed twice.
    """
    lines = body.split("\n")
    head = None
    if lines and lines[0].strip():
        head = lines.pop(0).strip()
    while lines and not lines[0].strip():
        lines.pop(0)
    rest = textwrap.dedent("\n".join(lines)).rstrip()
    if head is None:
        return rest
    return f"{head}\n{rest}" if rest else head


def is_balanced(code: str) -> bool:
    """Check that brackets pair up, ignoring strings and comments.

    Regular expression literals are not recognised; a bracket inside one
    counts like any other.
    """
    closers = {")": "(", "}": "{", "]": "["}
    stack = []
    i = 0
    while i < len(code):
        char = code[i]
        if code.startswith("//", i):
            end = code.find("\n", i)
            i = len(code) if end == -1 else end
            continue
        if code.startswith("/*", i):
            end = code.find("*/", i + 2)
            if end == -1:
                return False
            i = end + 2
            continue
        if char in "'\"`":
            i += 1
            while i < len(code) and code[i] != char:
                i += 2 if code[i] == "\\" else 1
            if i >= len(code):
                return False
        elif char in "({[":
            stack.append(char)
        elif char in closers:
            if not stack or stack.pop() != closers[char]:
                return False
        i += 1
    return not stack


def strip_iife(code: str) -> str:
    """Unwrap ``(function() { ... })();`` when it spans the whole code.

    Two wrappers in a row also start and end like one; the body of a real
    single wrapper is balanced on its own.
    """
    match = IIFE_PATTERN.match(code)
    if match is None or not is_balanced(match.group("body")):
        return code
    return match.group("body")


def rewrite_exports(code: str) -> Tuple[str, bool]:
    """Remove ES export syntax, keeping the exported code.

    Default exports become assignments to ``exports.default``. Returns the
    rewritten code and whether a default export was found.
    """
    has_default = False
    code = REEXPORT_PATTERN.sub("", code)

    def export_list(match):
        nonlocal has_default
        assignments = []
        for item in match.group("names").split(","):
            parts = item.split()
            if len(parts) == 3 and parts[1] == "as" and parts[2] == "default":
                assignments.append(f"exports.default = {parts[0]};\n")
                has_default = True
        return "".join(assignments)

    code = EXPORT_LIST_PATTERN.sub(export_list, code)

    declared_defaults = []

    def default_declaration(match):
        declared_defaults.append(match.group("fname") or match.group("cname"))
        return ""

    code = EXPORT_DEFAULT_DECLARATION_PATTERN.sub(default_declaration, code)
    if declared_defaults:
        has_default = True
        code = code.rstrip() + "".join(f"\nexports.default = {name};" for name in declared_defaults)

    code, count = EXPORT_DEFAULT_PATTERN.subn("exports.default = ", code)
    if count:
        has_default = True

    code = EXPORT_DECLARATION_PATTERN.sub("", code)
    return code, has_default


def add_default_export_return(code: str, indent: str = "    ") -> str:
    """Make the define() callback return its default export.

    Looks for ``Object.defineProperty(exports, "default", ...)`` or
    ``exports.default = ...`` and appends ``return exports.default;`` as the
    last statement of the callback, unless it is already there.
    """
    marker = DEFAULT_EXPORT_MARKER_PATTERN.search(code)
    if marker is None:
        return code

    target = (marker.group("defined") or marker.group("assigned")) + ".default"
    if re.search(r"\breturn\s+" + re.escape(target) + r"\b", code):
        return code

    closing = CALLBACK_END_PATTERN.search(code)
    if closing is None:
        return code

    head = code[:closing.start()].rstrip(" \t")
    if not head.endswith("\n"):
        head += "\n"
    return f"{head}{indent}return {target};\n{code[closing.start():]}"


def is_valid_amd(code: str) -> bool:
    """Check that code is a single named define() call."""
    return bool(CANONICAL_PATTERN.search(code.strip()))


class AmdTransformer:
    """
    Rewrites module source into a named AMD define() call.

    Each call is independent; the transformer keeps no state between files
    and can be shared by concurrent builds.
    """

    def __init__(self, options: Optional[TransformOptions] = None):
        self.options = options or TransformOptions()

    @property
    def indent(self) -> str:
        return " " * self.options.indent_size

    def transform(self, code: str, module_id: str, original_source: Optional[str] = None) -> TransformResult:
        """Transform code into an AMD module named ``module_id``.

        The original source, when given, decides whether the module is
        already AMD; the pipeline output may no longer look like it.
        """
        detected = detect_module(original_source if original_source is not None else code)
        debug_log(f"{module_id}: detected {detected.shape.value}")

        if isinstance(detected, ExistingLoaderModule):
            output, dependencies = self._emit_existing(detected, module_id)
        else:
            output, dependencies = self._emit_es_module(code, module_id)

        indent = self.indent if self.options.indent_body else ""
        output = add_default_export_return(output, indent)
        return TransformResult(
            code=output,
            module_id=module_id,
            shape=detected.shape,
            dependencies=dependencies,
        )

    def transform_existing(self, match: ExistingLoaderModule, module_id: str) -> str:
        """Name an existing define() call, keeping its parameters and body."""
        return self._emit_existing(match, module_id)[0]

    def transform_es_module(self, code: str, module_id: str) -> str:
        """Convert ES module code into a define() call."""
        return self._emit_es_module(code, module_id)[0]

    def _emit_existing(self, match, module_id):
        dependencies = self.parse_dependencies(match.dependency_list_text, module_id)
        body = normalize_body(match.body_text)
        return self.format_module(module_id, dependencies, match.param_list_text, body), dependencies

    def _emit_es_module(self, code, module_id):
        dependencies = extract_dependencies(code)
        body = self.transform_es_module_code(code, dependencies)
        output = self.format_module(
            module_id, dependencies.as_list(), dependencies.params, body, from_es_module=True
        )
        return output, dependencies.as_list()

    def transform_es_module_code(self, code, dependencies) -> str:
        """Strip import/export syntax and bind dependencies to parameters."""
        body = strip_imports(code)
        body, has_default = rewrite_exports(body)
        body = replace_requires(body, dependencies)
        body = normalize_body(strip_iife(body))

        prologue = []
        uses_exports = has_default or EXPORTS_REFERENCE_PATTERN.search(body)
        if uses_exports and not EXPORTS_DECLARATION_PATTERN.search(body):
            prologue.append("var exports = {};")
        prologue.extend(binding_declarations(dependencies))

        if not prologue:
            return body
        return "\n".join(prologue + ([body] if body else []))

    def parse_dependencies(self, dependencies_text: str, module_id: Optional[str] = None) -> List[str]:
        """Read a dependency array literal such as ``['core/ajax', "jquery",]``.

        Tries lenient JSON first, then picks out every quoted string. When
        neither works the module is emitted without dependencies and a
        warning is printed.
        """
        if not dependencies_text:
            return []

        try:
            return self._parse_lenient_json(dependencies_text, module_id)
        except DependencyParseError as e:
            debug_log(str(e))

        tokens = re.findall(r"(['\"`])([^'\"`]+)\1", dependencies_text)
        if tokens:
            return [token for _quote, token in tokens]

        warn(str(DependencyParseError(f"Could not parse dependencies: {dependencies_text}", module_id)))
        return []

    @staticmethod
    def _parse_lenient_json(text, module_id):
        cleaned = text.replace("'", '"').replace("`", '"')
        cleaned = re.sub(r",\s*]", "]", cleaned)
        cleaned = re.sub(r"\s+", " ", cleaned)
        try:
            value = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise DependencyParseError(f"Dependency array is not JSON: {e}", module_id)
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise DependencyParseError("Dependency array must only contain strings", module_id)
        return value

    def format_module(self, module_id, dependencies, params, body, from_es_module=False) -> str:
        """Render the canonical define() call."""
        indent = self.indent
        if self.options.indent_body:
            body = "\n".join(indent + line if line else line for line in body.split("\n"))

        deps = json.dumps(list(dependencies), separators=(",", ":"), ensure_ascii=False)
        result = f"define({json.dumps(module_id, ensure_ascii=False)}, {deps}, function({params}) {{\n"
        if self.options.add_source_comment and from_es_module:
            result += f"{indent}{SOURCE_COMMENT}\n"
        if body:
            result += body + "\n"
        result += "});"
        return result


class TransformHook:
    """
    Pre-emit hook for the bundling pipeline.

    Called once per output chunk with the chunk code and the module
    identifier; returns the replacement code, or None when nothing changed.
    """

    def __init__(self, source_path: Optional[str] = None, transformer: Optional[AmdTransformer] = None):
        self.source_path = source_path
        self.transformer = transformer or AmdTransformer()

    def read_original_source(self) -> Optional[str]:
        """Read the untransformed source file; None if there is none to read."""
        if not self.source_path:
            return None
        try:
            with open(self.source_path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            warn(f"Could not read original source {self.source_path}: {e}")
            return None

    def __call__(self, code: str, module_id: str) -> Optional[str]:
        try:
            result = self.transformer.transform(code, module_id, self.read_original_source())
        except AmdBuildError:
            raise
        except Exception as e:
            raise TransformError(f"AMD transformation failed: {e}", module_id) from e
        if result.code == code:
            return None
        return result.code
