# AI Tool Sync Plugin Errors
# Exception hierarchy for plugin resolution failures

from typing import Optional


class PluginError(Exception):
    """Base class for errors that abort a single plugin resolution."""

    #: LoadError type reported when the error is folded into a LoadResult
    error_type = "plugin"

    def __init__(self, message: str, *, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)


class ReferenceParseError(PluginError):
    """The plugin reference string is malformed."""

    error_type = "source"

    def __init__(self, reference: str, reason: str = "Invalid plugin source format"):
        self.reference = reference
        self.reason = reason
        super().__init__(f"{reason}: {reference}", path=reference)


class ResolutionError(PluginError):
    """A local path or fetched subpath does not exist."""

    error_type = "directory"


class SubpathNotFoundError(ResolutionError):
    """A subpath declared in the reference is missing from the fetched repository."""

    def __init__(self, subpath: str, root: str):
        self.subpath = subpath
        self.root = root
        super().__init__(f"Subpath does not exist in repository: {subpath}", path=subpath)


class FetchError(PluginError):
    """Cloning the plugin repository failed or timed out."""

    error_type = "fetch"

    def __init__(self, message: str, *, path: Optional[str] = None, returncode: int = 1, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, path=path)

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.message}\n{self.stderr}"
        return self.message


class ManifestError(PluginError):
    """The cache manifest cannot be read or does not match its schema."""

    error_type = "manifest"


class UpdateError(PluginError):
    """A plugin cannot be checked for or moved to a newer version."""

    error_type = "update"
