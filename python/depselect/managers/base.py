"""Common shape of every supported package manager."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from ..models import Selection
from .exec import CancellationToken


class PackageManager(str, Enum):
    """The supported package managers."""

    NPM = "npm"
    YARN = "yarn"
    DENO = "deno"


class PackageManagerDefinition(ABC):
    """Detection, dependency enumeration and task running for one package manager."""

    name: str

    @abstractmethod
    def task_run(self, task: str) -> List[str]:
        """Return the argv that runs a project task."""

    @abstractmethod
    def detect(self, cwd: str) -> bool:
        """Return True if the project at cwd uses this package manager. Never modifies anything."""

    @abstractmethod
    def get_dependencies(
        self,
        cwd: str,
        packaged_dependencies: Optional[List[str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Selection:
        """
        Return the directories that must be bundled with the project at cwd.

        Args:
            cwd: Project root
            packaged_dependencies: Top-level package names to restrict the
                result to; None selects every production dependency
            cancellation_token: Cancels any external command still running

        Returns:
            Selection of absolute directories, always including cwd
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
