import asyncio
import fnmatch
import glob
import os
from typing import List, Optional

from pydantic import BaseModel

from amdcore.bundler import Bundler
from amdcore.config import BuildConfig
from amdcore.console import debug_log, error, log, success, warn
from amdcore.errors import AmdBuildError, RegistryLoadError
from amdcore.paths import classify_path, is_valid_source_path, normalize_path, output_path_for
from amdcore.registry import ComponentRegistry
from amdcore.resolver import ModuleIdentifierResolver
from amdcore.transformer import AmdTransformer, TransformHook, TransformResult


class FileResult(BaseModel):
    """Outcome of building one source file."""
    file_path: str
    module_name: Optional[str] = None
    output_path: Optional[str] = None
    success: bool = False
    error: Optional[str] = None
    error_type: Optional[str] = None


class BuildStats(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0


def chunk_list(items, size):
    """Split items into consecutive lists of at most ``size`` elements."""
    return [items[i:i + size] for i in range(0, len(items), size)]


def matches_any(relative_path, patterns):
    """Glob match that also lets a leading ``**/`` match zero directories."""
    return any(
        fnmatch.fnmatch(relative_path, p) or fnmatch.fnmatch("/" + relative_path, p)
        for p in patterns
    )


class FileProcessor:
    """
    Builds every AMD source file of an installation.

    Files are independent: a failure is recorded on that file's result and
    the run carries on. Only a broken component configuration stops the
    run, before any file is touched.
    """

    def __init__(self, root_dir, config: Optional[BuildConfig] = None,
                 registry: Optional[ComponentRegistry] = None, bundler: Optional[Bundler] = None):
        self.root_dir = os.path.abspath(root_dir)
        self.config = config or BuildConfig()
        self.registry = registry or ComponentRegistry(self.root_dir)
        self.resolver = ModuleIdentifierResolver(self.registry)
        self.transformer = AmdTransformer(self.config.transform)
        self.bundler = bundler or Bundler(
            minify=self.config.minify,
            sourcemap=self.config.sourcemap,
            minifier_command=self.config.minifier_command,
        )
        self.stats = BuildStats()

    def find_source_files(self, cwd=None) -> List[str]:
        """Find amd/src files below ``cwd`` (default: the root), skipping ignored paths."""
        cwd = os.path.abspath(cwd or self.root_dir)
        debug_log(f"Searching for AMD files with patterns: {', '.join(self.config.patterns)}")

        found = []
        for pattern in self.config.patterns:
            for match in glob.glob(os.path.join(cwd, pattern), recursive=True):
                relative = normalize_path(os.path.relpath(match, cwd))
                if matches_any(relative, self.config.ignore):
                    continue
                if not is_valid_source_path(relative):
                    debug_log(f"Skipping invalid AMD path: {relative}")
                    continue
                found.append(os.path.abspath(match))

        unique = sorted(dict.fromkeys(found))
        log(f"Found {len(unique)} AMD source files")
        return unique

    async def process_single_file(self, file_path) -> FileResult:
        """Resolve, transform and write one file. Never raises for per-file problems."""
        result = FileResult(file_path=file_path)
        try:
            result.module_name = self.resolver.resolve(file_path, self.root_dir)
            result.output_path = output_path_for(self.root_dir, file_path)
            os.makedirs(os.path.dirname(result.output_path), exist_ok=True)

            hook = TransformHook(file_path, self.transformer)
            await self.bundler.build(file_path, result.module_name, result.output_path, hook)

            result.success = True
            self.stats.succeeded += 1
            debug_log(f"✓ {result.module_name}")
        except RegistryLoadError:
            raise
        except (AmdBuildError, OSError) as e:
            result.error = str(e)
            result.error_type = type(e).__name__
            self.stats.failed += 1
            error(f"✗ {result.module_name or os.path.basename(file_path)}: {e}")

        self.stats.processed += 1
        return result

    async def process_files(self, file_paths, concurrency=None) -> List[FileResult]:
        """Process files in sequential batches of ``concurrency`` concurrent builds."""
        concurrency = concurrency or self.config.concurrency
        self.reset_stats()

        # Fails the whole run before any file if the configuration is broken
        self.registry.load()

        file_paths = list(file_paths)
        if not file_paths:
            warn("No files to process")
            return []

        log(f"Processing {len(file_paths)} files with concurrency {concurrency}")

        results = []
        batches = chunk_list(file_paths, concurrency)
        for i, batch in enumerate(batches, 1):
            debug_log(f"Processing batch {i}/{len(batches)}")
            batch_results = await asyncio.gather(*(self.process_single_file(p) for p in batch))
            results.extend(batch_results)

        self.log_summary()
        return results

    def run(self, file_paths=None, concurrency=None) -> List[FileResult]:
        """Synchronous entry point; discovers files below the root when none are given."""
        if file_paths is None:
            file_paths = self.find_source_files()
        return asyncio.run(self.process_files(file_paths, concurrency))

    def inspect_file(self, file_path) -> TransformResult:
        """Transform a file in memory without writing anything."""
        module_name = self.resolver.resolve(file_path, self.root_dir)
        with open(file_path, "r", encoding="utf-8") as f:
            code = f.read()
        return self.transformer.transform(code, module_name, code)

    def validate_file(self, file_path) -> List[str]:
        """Return the problems that would stop ``file_path`` from building."""
        if not os.path.exists(file_path):
            return [f"File does not exist: {file_path}"]

        try:
            classify_path(file_path)
        except AmdBuildError as e:
            return [f"Invalid AMD path structure: {e}"]

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                f.read()
        except (OSError, UnicodeDecodeError) as e:
            return [f"File is not readable: {e}"]

        try:
            self.resolver.resolve(file_path, self.root_dir)
        except AmdBuildError as e:
            return [f"Cannot resolve module name: {e}"]

        return []

    def reset_stats(self):
        self.stats = BuildStats()

    def get_stats(self) -> BuildStats:
        return self.stats.model_copy()

    def log_summary(self):
        stats = self.stats
        log("Build Summary:")
        success(f"  Succeeded: {stats.succeeded}")
        if stats.failed > 0:
            error(f"  Failed: {stats.failed}")
        if stats.skipped > 0:
            warn(f"  Skipped: {stats.skipped}")
        log(f"  Total processed: {stats.processed}")
        if stats.failed > 0:
            warn("Some files failed to build. Check the error messages above for details.")
