"""
Component registry: maps component directories to Frankenstyle names.

The mapping is read from ``lib/components.json`` once per run. Subsystems
are matched exactly (``lib/access`` -> ``core_access``), plugin types by
directory prefix (``mod/forum`` -> ``mod_forum``). Anything else falls
back to a name derived from the path.
"""
import json
import os
import re
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from amdcore.console import debug_log
from amdcore.errors import InvalidPluginPathError, RegistryLoadError, UnresolvedComponentError
from amdcore.paths import COMPONENTS_FILE, normalize_path

CORE_COMPONENT = "core"

# Top-level library directory and its alias in the public/ layout.
CORE_DIRECTORIES = ("lib", "public/lib")

COMPONENT_NAME_PATTERN = re.compile(r"^(core|[a-z]+_[a-z][a-z0-9_]*)$")


class ComponentsFile(BaseModel):
    """Shape of lib/components.json. Directories may be null for virtual subsystems."""
    model_config = ConfigDict(extra="ignore")

    subsystems: Optional[Dict[str, Optional[str]]] = None
    plugintypes: Optional[Dict[str, Optional[str]]] = None


class ComponentMap(BaseModel):
    """Immutable lookup tables built from ComponentsFile."""
    model_config = ConfigDict(frozen=True)

    subsystems: Dict[str, str] = Field(default_factory=dict)
    plugin_types: Dict[str, str] = Field(default_factory=dict)


def _normalize_key(path: str) -> str:
    return normalize_path(path).rstrip("/")


def build_component_map(data: Optional[ComponentsFile]) -> ComponentMap:
    """Turn the raw configuration into lookup tables.

    Plugin roots are ordered most specific first so that nested plugin
    types (``mod/assign/submission``) win over their parent (``mod``).
    """
    subsystems = {}
    plugin_types = {}

    if data is not None:
        for name, directory in (data.subsystems or {}).items():
            if directory:
                component = name if name.startswith("core_") else f"core_{name}"
                subsystems[_normalize_key(directory)] = component

        roots = [(_normalize_key(d), t) for t, d in (data.plugintypes or {}).items() if d]
        for directory, plugin_type in sorted(roots, key=lambda item: -len(item[0])):
            plugin_types[directory] = plugin_type

    for directory in CORE_DIRECTORIES:
        subsystems[directory] = CORE_COMPONENT

    return ComponentMap(subsystems=subsystems, plugin_types=plugin_types)


def is_valid_component_name(component_name: str) -> bool:
    """Check the ``core``, ``core_*`` or ``type_name`` convention."""
    return bool(COMPONENT_NAME_PATTERN.match(component_name))


def path_to_component_name(component_path: str) -> str:
    """Fallback naming: ``local/foo`` -> ``local_foo``, ``lib`` -> ``core``."""
    if not component_path or component_path == ".":
        return CORE_COMPONENT
    name = component_path.replace("/", "_").strip("_")
    if not name or name == "lib":
        return CORE_COMPONENT
    return name


class ComponentRegistry:
    """
    Lazily loaded, read-only component lookup for one installation root.

    The map is built on the first ``resolve`` (or an explicit ``load``) and
    shared by every file of the run. ``clear_cache`` lets the same object
    serve a later, independent run.
    """

    def __init__(self, root_dir, component_map: Optional[ComponentMap] = None):
        self.root_dir = root_dir
        self._component_map = component_map

    @property
    def components_file(self):
        return os.path.join(self.root_dir, COMPONENTS_FILE)

    def load(self) -> ComponentMap:
        """Read lib/components.json once and cache the result.

        A missing file yields a registry that only knows the core
        directories; every other path uses fallback naming.

        Raises:
            RegistryLoadError: If the file exists but cannot be read or parsed.
        """
        if self._component_map is not None:
            return self._component_map

        path = self.components_file
        data = None
        if os.path.exists(path):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                data = ComponentsFile.model_validate(raw)
            except (OSError, UnicodeDecodeError) as e:
                raise RegistryLoadError(f"Cannot read component configuration: {e}", path)
            except json.JSONDecodeError as e:
                raise RegistryLoadError(
                    f"Component configuration is not valid JSON: {e}",
                    path,
                    "Check lib/components.json for syntax errors",
                )
            except ValidationError as e:
                raise RegistryLoadError(
                    f"Component configuration has an unexpected shape: {e.error_count()} error(s)",
                    path,
                    "Expected objects under 'subsystems' and 'plugintypes'",
                )
        else:
            debug_log(f"No component configuration at {path}, using path-derived names")

        self._component_map = build_component_map(data)
        debug_log(
            f"Component map: {len(self._component_map.subsystems)} subsystems, "
            f"{len(self._component_map.plugin_types)} plugin types"
        )
        return self._component_map

    def clear_cache(self):
        """Forget the loaded map so the next lookup reads the file again."""
        self._component_map = None

    @property
    def subsystems(self) -> Dict[str, str]:
        return dict(self.load().subsystems)

    @property
    def plugin_types(self) -> Dict[str, str]:
        return dict(self.load().plugin_types)

    def resolve(self, component_path: str) -> str:
        """Resolve a component directory (relative to the root) to its name.

        Raises:
            InvalidPluginPathError: A plugin root matched without a plugin name.
            UnresolvedComponentError: No well-formed name can be derived.
        """
        component_map = self.load()
        component_path = _normalize_key(component_path)

        # Subsystems first (exact match)
        if component_path in component_map.subsystems:
            return component_map.subsystems[component_path]

        # Plugin types (prefix match)
        for plugin_root, plugin_type in component_map.plugin_types.items():
            if component_path.startswith(plugin_root + "/"):
                plugin_name = component_path[len(plugin_root) + 1:]
                if not plugin_name or "/" in plugin_name:
                    raise InvalidPluginPathError(
                        "Invalid plugin path",
                        component_path,
                        f"Expected format: {plugin_root}/plugin_name",
                    )
                return f"{plugin_type}_{plugin_name}"

        fallback = path_to_component_name(component_path)
        if "/" in fallback:
            raise UnresolvedComponentError("Unable to resolve component name", component_path)
        return fallback
