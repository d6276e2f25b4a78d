"""Supported package managers and detection of the one a project uses."""

import logging

from .base import PackageManager, PackageManagerDefinition
from .deno import Deno
from .exec import CancellationToken
from .npm import Npm
from .yarn import Yarn

logger = logging.getLogger(__name__)

PACKAGE_MANAGERS = {
    PackageManager.NPM: Npm(),
    PackageManager.YARN: Yarn(),
    PackageManager.DENO: Deno(),
}

# Most specific signal first; npm always matches and is the fallback
DETECTION_ORDER = (PackageManager.YARN, PackageManager.DENO, PackageManager.NPM)


def detect_user_package_manager(cwd: str) -> PackageManager:
    """Detect the package manager used by the project in cwd."""
    for package_manager_id in DETECTION_ORDER:
        if get_package_manager(package_manager_id).detect(cwd):
            logger.info(f"Detected package manager: {package_manager_id.value}")
            return package_manager_id
    return PackageManager.NPM


def get_package_manager(package_manager_id) -> PackageManagerDefinition:
    """
    Look up a package manager definition.

    Args:
        package_manager_id: A PackageManager member or its name ("npm", "yarn", "deno")

    Raises:
        ValueError: For unknown package managers
    """
    try:
        package_manager_id = PackageManager(package_manager_id)
    except ValueError:
        raise ValueError(f"Unknown package manager: {package_manager_id}") from None
    return PACKAGE_MANAGERS[package_manager_id]


def get_package_manager_or_fallback(cwd: str, package_manager_id=None) -> PackageManagerDefinition:
    """Return the requested package manager, or the one detected for cwd."""
    if package_manager_id is None:
        package_manager_id = detect_user_package_manager(cwd)
    return get_package_manager(package_manager_id)


__all__ = [
    "CancellationToken",
    "Deno",
    "Npm",
    "PackageManager",
    "PackageManagerDefinition",
    "Yarn",
    "detect_user_package_manager",
    "get_package_manager",
    "get_package_manager_or_fallback",
]
