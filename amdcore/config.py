"""
Build configuration.

Defaults mirror a stock Moodle checkout. Overrides can be placed in an
``esm2amd.json`` file at the root of the installation or in the home
directory; command line flags win over both.
"""
import json
import os
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from amdcore.console import debug_log, warn

CONFIG_FILE = "esm2amd.json"

SOURCE_PATTERN = "**/amd/src/**/*.js"
IGNORE_PATTERNS = ["**/node_modules/**", "**/output/**", "**/build/**"]

# AMD callback parameters must survive mangling and the define() call must
# survive dead code elimination.
DEFAULT_MINIFIER_COMMAND = [
    "npx", "--no-install", "terser",
    "--compress", "passes=2,drop_console=false,drop_debugger=true,toplevel=false,top_retain=['define']",
    "--mangle", "reserved=['define','require','module','exports'],toplevel=false",
    "--format", "comments=false,semicolons=true,wrap_iife=false",
]


def default_concurrency():
    return max(1, os.cpu_count() or 1)


class TransformOptions(BaseModel):
    """Formatting knobs for the emitted define() call."""
    indent_size: int = Field(default=4, ge=0)
    indent_body: bool = True
    add_source_comment: bool = False


class BuildConfig(BaseModel):
    """Settings for one build run."""
    concurrency: int = Field(default_factory=default_concurrency, ge=1)
    patterns: List[str] = Field(default_factory=lambda: [SOURCE_PATTERN])
    ignore: List[str] = Field(default_factory=lambda: list(IGNORE_PATTERNS))
    minify: bool = True
    sourcemap: bool = True
    minifier_command: List[str] = Field(default_factory=lambda: list(DEFAULT_MINIFIER_COMMAND))
    transform: TransformOptions = Field(default_factory=TransformOptions)


def load_build_config(root_dir: Optional[str] = None, **overrides) -> BuildConfig:
    """Load build settings from esm2amd.json, falling back to defaults.

    Keyword overrides whose value is None are ignored so that unset CLI
    flags do not clobber the file.
    """
    paths = []
    if root_dir:
        paths.append(os.path.join(root_dir, CONFIG_FILE))
    paths.append(os.path.expanduser(f"~/.{CONFIG_FILE}"))

    data = {}
    for p in paths:
        if os.path.exists(p):
            try:
                with open(p, "r", encoding="utf-8") as f:
                    data = json.load(f)
                debug_log(f"Loaded build config from {p}")
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                warn(f"Ignoring unreadable config file {p}: {e}")
                data = {}
            break

    if not isinstance(data, dict):
        warn(f"Build config must be a JSON object, got {type(data).__name__}")
        data = {}
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return BuildConfig(**data)
    except ValidationError as e:
        warn(f"Invalid build config, using defaults: {e}")
        return BuildConfig(**{k: v for k, v in overrides.items() if v is not None})
