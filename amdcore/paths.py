"""
Path classification for AMD source files.

A source file lives at ``<component dir>/amd/src/<name>.js``; the build
output mirrors it at ``<component dir>/amd/build/<name>.min.js``. The
checks here are purely syntactic and never touch the filesystem, except
for ``find_root`` which looks for the installation's sentinel files.
"""
import os
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from amdcore.errors import PathFormatError

SOURCE_MARKER = "amd"
SOURCE_SUBDIR = "src"
BUILD_SUBDIR = "build"
SOURCE_EXTENSION = ".js"
BUILD_EXTENSION = ".min.js"

ROOT_SENTINELS = ["version.php", "config-dist.php"]
COMPONENTS_FILE = os.path.join("lib", "components.json")


class ClassifiedPath(BaseModel):
    """Segments of a validated source path and the index of the ``amd`` segment."""
    model_config = ConfigDict(frozen=True)

    segments: List[str]
    marker_index: int

    @property
    def component_path(self) -> str:
        """Directory of the owning component, e.g. ``mod/forum``."""
        return "/".join(self.segments[:self.marker_index])

    @property
    def file_path(self) -> str:
        """Path below ``amd/src`` without the extension, e.g. ``local/util``."""
        name = "/".join(self.segments[self.marker_index + 2:])
        return name[:-len(SOURCE_EXTENSION)]


def normalize_path(file_path: str) -> str:
    """Use forward slashes regardless of platform."""
    return file_path.replace("\\", "/")


def classify_path(file_path: str) -> ClassifiedPath:
    """Validate that a path has the ``*/amd/src/**/*.js`` shape and split it.

    Raises:
        PathFormatError: If the marker directories, the file name or the
            extension are missing.
    """
    normalized = normalize_path(file_path)
    segments = normalized.split("/")
    hint = f"Expected format: */{SOURCE_MARKER}/{SOURCE_SUBDIR}/*{SOURCE_EXTENSION}"

    if SOURCE_MARKER not in segments:
        raise PathFormatError(f"No '{SOURCE_MARKER}' directory in path", normalized, hint)
    marker_index = segments.index(SOURCE_MARKER)

    if marker_index + 1 >= len(segments) or segments[marker_index + 1] != SOURCE_SUBDIR:
        raise PathFormatError(
            f"'{SOURCE_MARKER}' is not followed by '{SOURCE_SUBDIR}'", normalized, hint
        )

    rest = segments[marker_index + 2:]
    if not rest or any(not part for part in rest):
        raise PathFormatError("Missing file name below the source directory", normalized, hint)

    if not normalized.endswith(SOURCE_EXTENSION) or rest[-1] == SOURCE_EXTENSION:
        raise PathFormatError(f"Not a '{SOURCE_EXTENSION}' file", normalized, hint)

    return ClassifiedPath(segments=segments, marker_index=marker_index)


def is_valid_source_path(file_path: str) -> bool:
    try:
        classify_path(file_path)
    except PathFormatError:
        return False
    return True


def relative_to_root(root_dir: str, file_path: str) -> str:
    """Return ``file_path`` relative to ``root_dir`` with forward slashes.

    Raises:
        PathFormatError: If the file is not below the root.
    """
    try:
        relative = normalize_path(os.path.relpath(file_path, root_dir))
    except ValueError:
        # Different drives on Windows
        raise PathFormatError("File is not below the source root", normalize_path(file_path))
    if relative == ".." or relative.startswith("../"):
        raise PathFormatError(
            "File is not below the source root",
            normalize_path(file_path),
            f"Source root is {normalize_path(root_dir)}",
        )
    return relative


def output_path_for(root_dir: str, source_path: str) -> str:
    """Map ``<c>/amd/src/<f>.js`` to ``<c>/amd/build/<f>.min.js`` below the root."""
    classified = classify_path(relative_to_root(root_dir, source_path))
    segments = list(classified.segments)
    segments[classified.marker_index + 1] = BUILD_SUBDIR
    segments[-1] = segments[-1][:-len(SOURCE_EXTENSION)] + BUILD_EXTENSION
    return os.path.join(root_dir, *segments)


def find_root(start_dir: str) -> Optional[str]:
    """Walk up from ``start_dir`` to the installation root.

    The root holds either both version.php and config-dist.php, or
    lib/components.json. Returns None when the filesystem root is reached.
    """
    current = os.path.abspath(start_dir)
    while True:
        if all(os.path.exists(os.path.join(current, f)) for f in ROOT_SENTINELS):
            return current
        if os.path.exists(os.path.join(current, COMPONENTS_FILE)):
            return current

        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent
