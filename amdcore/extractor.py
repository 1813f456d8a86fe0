"""
Dependency extraction for ES-module style sources.

Dependencies are collected from ``import ... from "x"``, ``import "x"`` and
``require("x")`` in the order they first appear. Each distinct specifier
gets a positional parameter name (``dep0``, ``dep1``, ...) which is used
both for the callback parameters and for rewriting ``require`` calls, so
the two always line up with the emitted dependency array.
"""
import re
from functools import lru_cache
from typing import List, Tuple

from lark import Lark, Transformer
from lark.exceptions import LarkError
from pydantic import BaseModel, ConfigDict

from amdcore.console import debug_log
from amdcore.grammar import import_clause_grammar

IDENTIFIER = r"[A-Za-z_$][\w$]*"

# Consumes the statement terminator and the rest of the line.
STATEMENT_END = r"(?:[ \t]*;)?[ \t]*(?:\r?\n)?"

IMPORT_FROM_PATTERN = re.compile(
    r"\bimport(?:\s+|(?=[{*]))"
    r"(?P<clause>(?:" + IDENTIFIER + r"\s*,\s*)?(?:\{[^}]*\}|\*\s*as\s+" + IDENTIFIER + r"|" + IDENTIFIER + r"))"
    r"\s*(?<=[\s}])from\s*(?P<quote>['\"`])(?P<spec>[^'\"`]+)(?P=quote)" + STATEMENT_END
)

SIDE_EFFECT_IMPORT_PATTERN = re.compile(
    r"\bimport\s*(?P<quote>['\"`])(?P<spec>[^'\"`]+)(?P=quote)" + STATEMENT_END
)

REQUIRE_PATTERN = re.compile(
    r"(?<![\w$])require\s*\(\s*(?P<quote>['\"`])(?P<spec>[^'\"`]+)(?P=quote)\s*\)"
)


class ImportBinding(BaseModel):
    """A local name introduced by an import clause.

    ``imported`` is ``default`` for default imports, ``*`` for namespace
    imports and the exported name otherwise.
    """
    model_config = ConfigDict(frozen=True)

    local: str
    imported: str
    index: int


class DependencyList(BaseModel):
    """Ordered, de-duplicated dependency specifiers of one module."""
    model_config = ConfigDict(frozen=True)

    specifiers: Tuple[str, ...] = ()
    bindings: Tuple[ImportBinding, ...] = ()

    @property
    def param_names(self) -> List[str]:
        return [param_name(i) for i in range(len(self.specifiers))]

    @property
    def params(self) -> str:
        """Comma-separated callback parameters matching the dependency order."""
        return ", ".join(self.param_names)

    def index_of(self, specifier: str) -> int:
        return self.specifiers.index(specifier)

    def as_list(self) -> List[str]:
        return list(self.specifiers)


def param_name(index: int) -> str:
    return f"dep{index}"


class ImportClauseTransformer(Transformer):
    """Turns an import clause parse tree into (imported, local) pairs."""

    def start(self, items):
        pairs = []
        for item in items:
            pairs.extend(item)
        return pairs

    def default_binding(self, items):
        return [("default", items[0])]

    def namespace_binding(self, items):
        return [("*", items[0])]

    def named_bindings(self, items):
        return list(items)

    def import_specifier(self, items):
        imported = items[0]
        local = items[1] if len(items) > 1 else imported
        return (imported, local)

    def import_name(self, items):
        return items[0]

    def NAME(self, t): return str(t)
    def STRING(self, t): return str(t)[1:-1]


@lru_cache(maxsize=1)
def _clause_parser():
    return Lark(import_clause_grammar, parser="earley")


def parse_import_clause(clause: str) -> List[Tuple[str, str]]:
    """Parse ``Foo, {a as b}`` into ``[("default", "Foo"), ("a", "b")]``.

    Clauses the grammar does not understand yield no bindings; the
    dependency itself is still recorded by the caller.
    """
    try:
        tree = _clause_parser().parse(clause)
        return ImportClauseTransformer().transform(tree)
    except LarkError as e:
        debug_log(f"Could not parse import clause '{clause}': {e}")
        return []


def extract_dependencies(code: str) -> DependencyList:
    """Collect dependency specifiers and import bindings from ES module code."""
    found = []
    for match in IMPORT_FROM_PATTERN.finditer(code):
        found.append((match.start(), match.group("spec"), match.group("clause")))
    for match in SIDE_EFFECT_IMPORT_PATTERN.finditer(code):
        found.append((match.start(), match.group("spec"), None))
    for match in REQUIRE_PATTERN.finditer(code):
        found.append((match.start(), match.group("spec"), None))
    found.sort(key=lambda item: item[0])

    specifiers = []
    bindings = []
    for _, spec, clause in found:
        if spec not in specifiers:
            specifiers.append(spec)
        if clause:
            index = specifiers.index(spec)
            for imported, local in parse_import_clause(clause):
                bindings.append(ImportBinding(local=local, imported=imported, index=index))

    return DependencyList(specifiers=tuple(specifiers), bindings=tuple(bindings))


def strip_imports(code: str) -> str:
    """Remove every import statement, including side-effect imports."""
    code = IMPORT_FROM_PATTERN.sub("", code)
    return SIDE_EFFECT_IMPORT_PATTERN.sub("", code)


def replace_requires(code: str, dependencies: DependencyList) -> str:
    """Rewrite ``require("x")`` to the parameter token assigned to ``x``."""
    for index, spec in enumerate(dependencies.specifiers):
        pattern = re.compile(
            r"(?<![\w$])require\s*\(\s*(['\"`])" + re.escape(spec) + r"\1\s*\)"
        )
        token = param_name(index)
        code = pattern.sub(lambda _m: token, code)
    return code


def binding_declarations(dependencies: DependencyList) -> List[str]:
    """Declarations that re-create the names the removed imports introduced."""
    lines = []
    for binding in dependencies.bindings:
        source = param_name(binding.index)
        if binding.imported in ("default", "*"):
            value = source
        elif re.fullmatch(IDENTIFIER, binding.imported):
            value = f"{source}.{binding.imported}"
        else:
            value = f"{source}[\"{binding.imported}\"]"
        lines.append(f"var {binding.local} = {value};")
    return lines
