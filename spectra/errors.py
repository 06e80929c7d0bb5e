"""
Spectra error taxonomy.

All errors are local and deterministic. None of them are retryable: there is
no network or external service behind the engine. Store I/O failures
(sqlite3.Error) are not wrapped and propagate as-is.
"""


class SpectraError(Exception):
    """Base class for every error raised by the engine."""
    pass


class NodeNotFoundError(SpectraError, FileNotFoundError):
    """Path or node is absent, or hidden in the requested world."""

    def __init__(self, path: str, world: str = "primary"):
        self.path = path
        self.world = world
        super().__init__(f"node '{path}' not found in world '{world}'")


class NodeExistsError(SpectraError, FileExistsError):
    """A node already occupies the requested path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"node '{path}' already exists")


class NotAFolderError(SpectraError, NotADirectoryError):
    """A path was traversed through a file."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"'{path}' is not a folder")


class FolderNotEmptyError(SpectraError, OSError):
    """Deletion of a folder that still has children."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"folder '{path}' is not empty")


class InvalidConfigError(SpectraError, ValueError):
    """Seed bounds violated, unreadable config, or unknown world requested."""
    pass


class InvalidNameError(SpectraError, ValueError):
    """A node name that cannot be a single path segment."""
    pass


class NotAFileError(SpectraError, IsADirectoryError):
    """A file operation was pointed at a folder."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"'{path}' is a folder, not a file")


class RootProtectedError(SpectraError, PermissionError):
    """The root folder cannot be deleted."""

    def __init__(self):
        self.path = "/"
        super().__init__("the root folder cannot be deleted")
