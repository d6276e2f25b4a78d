"""Exceptions raised while resolving dependency directories."""

from typing import Optional, Sequence


class DependencyResolutionError(Exception):
    """Base class for every failure of a dependency enumeration."""


class ToolInvocationError(DependencyResolutionError):
    """An external package manager command failed or printed unparsable output."""

    def __init__(self, message: str, command: Optional[Sequence[str]] = None,
                 returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.command = list(command) if command else None
        self.returncode = returncode
        self.stderr = stderr


class OperationCancelledError(DependencyResolutionError):
    """The caller cancelled a pending external command."""


class LockfileNotFoundError(DependencyResolutionError):
    """No lock document exists in the project directory or its ancestors."""


class LockfileFormatError(DependencyResolutionError):
    """The lock document is malformed or could not be traversed."""


class DuplicateNameError(DependencyResolutionError):
    """Two top-level tree entries normalize to the same package name."""


class MissingDependencyError(DependencyResolutionError):
    """A requested or referenced package could not be located."""


class IncompatibleToolVersionError(DependencyResolutionError):
    """The installed package manager release is known not to work."""
