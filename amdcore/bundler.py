"""
Bundling pipeline for a single AMD source file.

Reads the source, hands it to the transform hook as the output chunk and
writes the result, optionally through an external minifier (terser by
default) that runs as a subprocess. Several files can be in flight at the
same time; each build only touches its own output path.
"""
import asyncio
import os
from typing import Callable, List, Optional

from amdcore.config import DEFAULT_MINIFIER_COMMAND
from amdcore.console import debug_log
from amdcore.errors import BundleError

# hook(code, module_id) -> replacement code or None
Hook = Callable[[str, str], Optional[str]]


class Bundler:
    """Runs one file through the transform hook and the minifier."""

    def __init__(self, minify=True, sourcemap=True, minifier_command: Optional[List[str]] = None):
        self.minify = minify
        self.sourcemap = sourcemap
        self.minifier_command = list(minifier_command or DEFAULT_MINIFIER_COMMAND)

    async def build(self, input_path: str, module_id: str, output_path: str, hook: Hook) -> str:
        """Build ``input_path`` into ``output_path``.

        Raises:
            BundleError: The source cannot be read, the minifier fails or the
                output cannot be written.
        """
        try:
            with open(input_path, "r", encoding="utf-8") as f:
                code = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise BundleError(f"Cannot read source: {e}", input_path)

        replacement = hook(code, module_id)
        if replacement is not None:
            code = replacement

        if self.minify:
            await self.run_minifier(code, output_path)
        else:
            self.write_output(code, output_path)

        debug_log(f"Wrote {output_path}")
        return output_path

    def minifier_args(self, output_path: str) -> List[str]:
        args = self.minifier_command + ["--output", output_path]
        if self.sourcemap:
            args += ["--source-map", f"url='{os.path.basename(output_path)}.map'"]
        return args

    async def run_minifier(self, code: str, output_path: str):
        """Pipe code through the minifier command, which writes the output file."""
        args = self.minifier_args(output_path)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BundleError(
                f"Minifier could not be started: {e}",
                output_path,
                "Install terser (npm install terser) or build with --no-minify",
            )

        _stdout, stderr = await process.communicate(code.encode("utf-8"))
        if process.returncode != 0:
            details = stderr.decode("utf-8", errors="replace").strip()
            raise BundleError(
                f"Minifier exited with status {process.returncode}: {details[:200]}",
                output_path,
            )

    @staticmethod
    def write_output(code: str, output_path: str):
        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(code)
                if not code.endswith("\n"):
                    f.write("\n")
        except OSError as e:
            raise BundleError(f"Cannot write output: {e}", output_path)
