"""On-disk lookups for the deno package store and workspace descriptors."""

import json
import logging
import os
from typing import Any, Dict

from .errors import LockfileFormatError, MissingDependencyError

logger = logging.getLogger(__name__)


class StoreLocator:
    """
    Maps locked packages to the directories deno installed them into.

    Deno keeps one directory per package version under
    <lock dir>/node_modules/.deno/<name@version>/node_modules, where the "/"
    of a scoped name is replaced by "+". Swap this class out to resolve
    against a different layout, or a fake one in tests.
    """

    STORE_DIR = os.path.join('node_modules', '.deno')

    @staticmethod
    def store_id(package_at_version: str) -> str:
        """Return the store directory name for a package@version."""
        return package_at_version.replace('/', '+')

    def store_path(self, lock_path: str, package_at_version: str) -> str:
        """Return the unresolved store directory of a package@version."""
        return os.path.join(
            os.path.dirname(lock_path),
            self.STORE_DIR,
            self.store_id(package_at_version),
            'node_modules',
        )

    def resolve(self, path: str) -> str:
        """
        Resolve symbolic links to the real backing directory.

        Raises:
            MissingDependencyError: If the directory does not exist
        """
        try:
            real_path = os.path.realpath(path, strict=True)
        except OSError as e:
            raise MissingDependencyError(f"Package store directory does not exist: {path}") from e
        if real_path != path:
            logger.debug(f"Resolved {path} -> {real_path}")
        return real_path

    def locate(self, lock_path: str, package_at_version: str) -> str:
        """Return the real on-disk directory holding a package@version."""
        return self.resolve(self.store_path(lock_path, package_at_version))

    def read_package_json(self, directory: str) -> Dict[str, Any]:
        """
        Load the package.json of a workspace member.

        Raises:
            MissingDependencyError: If the directory has no package.json
        """
        package_json_path = os.path.join(directory, 'package.json')
        if not os.path.isfile(package_json_path):
            raise MissingDependencyError(f"Could not find package.json in workspace {directory}")

        with open(package_json_path, 'r', encoding='utf-8') as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise LockfileFormatError(f"Invalid JSON in {package_json_path}: {e}") from e
