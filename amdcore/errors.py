"""
Error taxonomy for the AMD build.

Every error carries the offending path or module identifier so a failure
can be traced back to a file in the batch summary.
"""


class AmdBuildError(Exception):
    """Base exception for AMD build errors with the offending path and a hint."""
    def __init__(self, message, path=None, suggestion=None):
        self.message = message
        self.path = path
        self.suggestion = suggestion  # How to fix it
        super().__init__(self._format_error())

    def _format_error(self):
        """Format the error message with path and suggestion."""
        parts = [self.message]
        if self.path:
            parts.append(f" [{self.path}]")
        if self.suggestion:
            parts.append(f"\n   💡 {self.suggestion}")
        return "".join(parts)


class PathFormatError(AmdBuildError):
    """The file path does not have the */amd/src/*.js shape."""


class RegistryLoadError(AmdBuildError):
    """The component configuration file exists but cannot be used."""


class InvalidPluginPathError(AmdBuildError):
    """A plugin-type prefix matched but left no usable plugin name."""


class UnresolvedComponentError(AmdBuildError):
    """No component name can be derived for a directory."""


class DependencyParseError(AmdBuildError):
    """A dependency array literal could not be read."""


class TransformError(AmdBuildError):
    """Unexpected failure while rewriting a module."""


class BundleError(AmdBuildError):
    """The external bundling or minifying step failed."""
