# esm2amd - AMD build engine
"""
Core modules for converting ES modules into named AMD modules:
- errors: Error taxonomy
- console: stderr logging helpers
- config: Build and transform settings
- paths: Source path classification and output paths
- registry: Component directory -> Frankenstyle name mapping
- resolver: File path -> module identifier
- detector: AMD / ES module format detection
- extractor: Dependency extraction for ES modules
- transformer: define() emission and the pipeline hook
- bundler: Per-file build through the hook and the minifier
"""

from .errors import AmdBuildError
from .config import BuildConfig, TransformOptions, load_build_config
from .registry import ComponentRegistry
from .resolver import ModuleIdentifierResolver
from .detector import ModuleShape, detect_module
from .extractor import extract_dependencies
from .transformer import AmdTransformer, TransformHook
from .bundler import Bundler

__all__ = [
    'AmdBuildError',
    'BuildConfig',
    'TransformOptions',
    'load_build_config',
    'ComponentRegistry',
    'ModuleIdentifierResolver',
    'ModuleShape',
    'detect_module',
    'extract_dependencies',
    'AmdTransformer',
    'TransformHook',
    'Bundler',
]
