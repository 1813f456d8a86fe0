"""
Module format detection.

A source is either already an AMD ``define(...)`` call or an ES module.
Detection looks at the shape of the trailing text only; there is no
JavaScript parser involved. A ``define(`` inside a string or comment at the
very end of a file can therefore be mistaken for a real call.

Recognisers are tried in a fixed order and the first match wins. The named
form is tried after the plain dependency-array form but before giving up,
since a module name only appears together with a dependency array.
"""
import re
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

_CALLBACK = r"function\s*\((?P<params>[^)]*)\)\s*\{(?P<body>[\s\S]*)\}\s*\)\s*;?\s*\Z"
_DEPENDENCIES = r"(?P<deps>\[[\s\S]*?\])"


class ModuleShape(Enum):
    """Recognised source shapes, in detection order."""
    DEPENDENCY_ARRAY = "define([deps], function(...) {...})"
    NAMED_DEPENDENCY_ARRAY = "define(\"name\", [deps], function(...) {...})"
    BARE_FUNCTION = "define(function(...) {...})"
    ES_MODULE = "ES module"


RECOGNIZERS = (
    (ModuleShape.DEPENDENCY_ARRAY, re.compile(
        r"\bdefine\s*\(\s*" + _DEPENDENCIES + r"\s*,\s*" + _CALLBACK)),
    (ModuleShape.NAMED_DEPENDENCY_ARRAY, re.compile(
        r"\bdefine\s*\(\s*(?P<quote>['\"`])(?P<name>[^'\"`]*?)(?P=quote)\s*,\s*"
        + _DEPENDENCIES + r"\s*,\s*" + _CALLBACK)),
    (ModuleShape.BARE_FUNCTION, re.compile(
        r"\bdefine\s*\(\s*" + _CALLBACK)),
)


class ExistingLoaderModule(BaseModel):
    """A source that already is a define() call, split into its parts."""
    model_config = ConfigDict(frozen=True)

    shape: ModuleShape
    dependency_list_text: str
    param_list_text: str
    body_text: str
    name: Optional[str] = None


class EsModuleSource(BaseModel):
    """A source that is not a define() call and is treated as an ES module."""
    model_config = ConfigDict(frozen=True)

    raw_text: str

    @property
    def shape(self) -> ModuleShape:
        return ModuleShape.ES_MODULE


DetectedModule = Union[ExistingLoaderModule, EsModuleSource]


def recognize(shape: ModuleShape, code: str) -> Optional[ExistingLoaderModule]:
    """Apply a single recogniser. Returns None if the text does not have that shape."""
    for candidate, pattern in RECOGNIZERS:
        if candidate is shape:
            match = pattern.search(code)
            if match is None:
                return None
            groups = match.groupdict()
            return ExistingLoaderModule(
                shape=shape,
                dependency_list_text=groups.get("deps") or "[]",
                param_list_text=groups.get("params") or "",
                body_text=groups["body"],
                name=groups.get("name"),
            )
    raise ValueError(f"No recogniser for {shape}")


def match_loader_module(code: str) -> Optional[ExistingLoaderModule]:
    """Try every recogniser in order; None means the code is not a define() call."""
    for shape, _pattern in RECOGNIZERS:
        match = recognize(shape, code)
        if match is not None:
            return match
    return None


def detect_module(code: str) -> DetectedModule:
    """Classify source text, defaulting to an ES module."""
    match = match_loader_module(code)
    if match is None:
        return EsModuleSource(raw_text=code)
    return match
