"""
Module identifier resolution: file path -> ``component/file``.
"""
from amdcore.console import warn
from amdcore.errors import PathFormatError
from amdcore.paths import classify_path, relative_to_root
from amdcore.registry import ComponentRegistry, is_valid_component_name


class ModuleIdentifierResolver:
    """Combines the path classifier with the component registry."""

    def __init__(self, registry: ComponentRegistry):
        self.registry = registry

    def resolve(self, file_path: str, source_root: str) -> str:
        """Return the AMD module identifier for a source file.

        ``/moodle/mod/forum/amd/src/local/util.js`` under ``/moodle``
        resolves to ``mod_forum/local/util``.

        Raises:
            PathFormatError: The path is outside the root or not an amd/src file.
            InvalidPluginPathError, UnresolvedComponentError: No component name.
        """
        classified = classify_path(relative_to_root(source_root, file_path))
        file_name = classified.file_path
        if not file_name:
            raise PathFormatError("Invalid file name in path", file_path)

        component = self.registry.resolve(classified.component_path)
        if not is_valid_component_name(component):
            warn(f"Component name '{component}' for {classified.component_path or '.'} "
                 "does not follow the core_* / type_name convention")
        return f"{component}/{file_name}"
