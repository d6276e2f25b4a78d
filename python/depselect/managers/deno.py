"""deno: dependencies are computed from the workspace and registry graph in deno.lock."""

import logging
import os
from typing import Dict, List, Optional, Tuple

from ..errors import LockfileFormatError, MissingDependencyError
from ..lockfile import dependency_token, find_deno_lock, iter_registry_keys, read_deno_lock
from ..models import LockDocument, Package, Selection, WorkspaceRoot
from ..store import StoreLocator
from ..version_parser import VersionParser
from .base import PackageManagerDefinition
from .exec import CancellationToken

logger = logging.getLogger(__name__)

# Safety limit on frontier iterations to prevent infinite loops
MAX_ITERATIONS = 10000

# Registry assumed for workspace dependencies written without a registry prefix
DEFAULT_REGISTRY = 'npm'

WORKSPACE_PROTOCOL = 'workspace:'

JSR_REGISTRY = 'jsr'


def build_workspace_catalog(
    lock_path: str,
    document: LockDocument,
    locator: StoreLocator,
) -> Dict[str, WorkspaceRoot]:
    """
    Attach package names and local workspace dependencies to every member.

    The lock document only knows members by their path, so each member's
    package.json is read to recover its name and the dependencies it pulls
    from the workspace via the "workspace:" protocol.
    """
    lock_dir = os.path.dirname(lock_path)
    catalog: Dict[str, WorkspaceRoot] = {}

    for local_path, member in document.members.items():
        package_json = locator.read_package_json(os.path.join(lock_dir, local_path))
        name = package_json.get('name')
        if not name:
            raise LockfileFormatError(f"Could not find name in package.json in workspace {local_path}")

        workspace_dependencies = [
            dep_name
            for dep_name, dep_version in (package_json.get('dependencies') or {}).items()
            if str(dep_version).startswith(WORKSPACE_PROTOCOL)
        ]
        catalog[local_path] = WorkspaceRoot(
            dependencies=list(member.dependencies),
            workspace_dependencies=workspace_dependencies,
            name=name,
        )
        logger.debug(
            f"Workspace member {local_path} is '{name}' with {len(member.dependencies)} registry "
            f"and {len(workspace_dependencies)} workspace dependencies"
        )

    return catalog


def _bare_package_name(key: str) -> str:
    name, version = VersionParser.split_package_at_version(key)
    if version is None:
        raise LockfileFormatError(f"Invalid specifier in deno.lock: '{key}'")
    return name


def _add_store_paths(
    selection: Selection,
    locator: StoreLocator,
    lock_path: str,
    registry_id: str,
    package_at_version: str,
) -> None:
    """Add the store directory of every package merged into one lock key."""
    for single in VersionParser.split_multi_package_at_version(package_at_version):
        name, version = VersionParser.split_package_at_version(single)
        selection.add(
            locator.locate(lock_path, single),
            Package(system=registry_id, name=name, version=version or ''),
        )


class Deno(PackageManagerDefinition):
    """Resolves dependencies from deno.lock and the node_modules/.deno store."""

    name = 'deno'

    def __init__(self, locator: Optional[StoreLocator] = None, max_iterations: int = MAX_ITERATIONS):
        self.locator = locator or StoreLocator()
        self.max_iterations = max_iterations

    def task_run(self, task: str) -> List[str]:
        return ['deno', 'task', task]

    def detect(self, cwd: str) -> bool:
        return find_deno_lock(cwd) is not None

    def get_dependencies(
        self,
        cwd: str,
        packaged_dependencies: Optional[List[str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Selection:
        """
        Get the dependencies from deno.lock as the root directories of each package.

        If packaged_dependencies is provided, return only those dependencies
        and what they need. Otherwise, return every package in the lock file.
        This includes everything in the workspace when working in a monorepo.
        """
        cwd = os.path.abspath(cwd)
        lock_path, document = read_deno_lock(cwd)

        if packaged_dependencies is None:
            selection = self.get_all_dependencies(lock_path, document)
        else:
            selection = self.select_dependencies(lock_path, document, packaged_dependencies)

        # ensure the root workspace is included in the results
        selection.add(cwd)
        logger.info(f"Selected {len(selection)} directories from {lock_path}")
        return selection

    def get_all_dependencies(self, lock_path: str, document: LockDocument) -> Selection:
        """Return the store path of every package in every known registry."""
        selection = Selection()
        for registry_id, key in iter_registry_keys(document):
            try:
                _add_store_paths(selection, self.locator, lock_path, registry_id, key)
            except MissingDependencyError as e:
                # deno keeps jsr packages outside node_modules/.deno
                if registry_id != JSR_REGISTRY:
                    raise
                logger.warning(f"Skipping jsr:{key}: {e}")
        return selection

    def select_dependencies(
        self,
        lock_path: str,
        document: LockDocument,
        packaged_dependencies: List[str],
    ) -> Selection:
        """Return the minimal closure of workspace and registry packages needed by packaged_dependencies."""
        wanted = set(packaged_dependencies)
        catalog = build_workspace_catalog(lock_path, document, self.locator)
        local_path_by_name = {member.name: local_path for local_path, member in catalog.items()}

        # Registry tokens seen so far; doubles as the visited set of the
        # registry traversal below
        registry_dependencies: Dict[str, None] = {}
        found = set(local_path_by_name) & wanted
        for registry_id, key in iter_registry_keys(document):
            name = _bare_package_name(key)
            if name in wanted:
                registry_dependencies[f"{registry_id}:{key}"] = None
                found.add(name)

        missing = [name for name in packaged_dependencies if name not in found]
        if missing:
            raise MissingDependencyError(
                f"Could not find packaged dependencies in deno.lock or the workspace: {', '.join(missing)}"
            )

        selection = Selection()
        lock_dir = os.path.dirname(lock_path)

        workspaces_frontier: List[Tuple[str, WorkspaceRoot]] = [
            (local_path, member) for local_path, member in catalog.items() if member.name in wanted
        ]
        self._drain_workspaces(workspaces_frontier, catalog, local_path_by_name, document,
                               registry_dependencies, selection, lock_dir)

        frontier = list(registry_dependencies)
        self._drain_registries(frontier, document, registry_dependencies, selection, lock_path)
        return selection

    def _drain_workspaces(
        self,
        frontier: List[Tuple[str, WorkspaceRoot]],
        catalog: Dict[str, WorkspaceRoot],
        local_path_by_name: Dict[str, str],
        document: LockDocument,
        registry_dependencies: Dict[str, None],
        selection: Selection,
        lock_dir: str,
    ) -> None:
        iterations = 0
        while frontier:
            iterations += 1
            if iterations > self.max_iterations:
                raise LockfileFormatError(
                    f"Exceeded {self.max_iterations} iterations traversing workspace members; "
                    f"the workspace dependency graph is likely cyclic"
                )

            local_path, member = frontier.pop()
            logger.debug(f"Visiting workspace member {member.name} ({local_path})")
            selection.add(os.path.normpath(os.path.join(lock_dir, local_path)))

            for dependency in member.workspace_dependencies:
                dependency_path = local_path_by_name.get(dependency)
                if dependency_path is None:
                    raise MissingDependencyError(
                        f"Workspace member {member.name} depends on unknown workspace package {dependency}"
                    )
                frontier.append((dependency_path, catalog[dependency_path]))

            for dependency in member.dependencies:
                # translate the dependency range to the exact version locked for it
                exact_version = document.specifiers.get(dependency)
                if exact_version is None:
                    raise LockfileFormatError(f"Could not find specifier '{dependency}' in deno.lock")
                name, _ = VersionParser.split_package_at_version(dependency)
                token = f"{name}@{exact_version}"
                if ':' not in token:
                    token = f"{DEFAULT_REGISTRY}:{token}"
                registry_dependencies[token] = None

    def _drain_registries(
        self,
        frontier: List[str],
        document: LockDocument,
        registry_dependencies: Dict[str, None],
        selection: Selection,
        lock_path: str,
    ) -> None:
        iterations = 0
        while frontier:
            iterations += 1
            if iterations > self.max_iterations:
                raise LockfileFormatError(
                    f"Exceeded {self.max_iterations} iterations traversing registry dependencies"
                )

            token = frontier.pop()
            registry_id, _, package_at_version = token.partition(':')
            if not registry_id or not package_at_version:
                raise LockfileFormatError(f"Invalid version string in deno.lock: {token}")
            if registry_id not in document.registries:
                raise LockfileFormatError(f"Could not find registry {registry_id} in deno.lock")
            entries = document.registries[registry_id]

            package_at_version = self._infer_version(registry_id, package_at_version, entries)
            logger.debug(f"Visiting {registry_id}:{package_at_version}")
            _add_store_paths(selection, self.locator, lock_path, registry_id, package_at_version)

            entry = entries.get(package_at_version)
            if entry is None:
                raise MissingDependencyError(
                    f"Could not find '{package_at_version}' in deno.lock registry {registry_id}"
                )

            for dependency in entry.dependencies:
                dependency_string = dependency_token(dependency, registry_id)
                if dependency_string not in registry_dependencies:
                    registry_dependencies[dependency_string] = None
                    frontier.append(dependency_string)

    @staticmethod
    def _infer_version(registry_id: str, package_at_version: str, entries: dict) -> str:
        """
        Fill in the version of a reference that names only a package.

        Such references are expected to be unambiguous; when several keys
        match, the lexicographically first one is used.
        """
        package_name, version = VersionParser.split_package_at_version(package_at_version)
        if version is not None:
            return package_at_version

        candidates = sorted(key for key in entries if key.startswith(f"{package_name}@"))
        if not candidates:
            raise MissingDependencyError(
                f"Could not find any version of '{package_name}' in deno.lock registry {registry_id}"
            )
        if len(candidates) > 1:
            logger.warning(
                f"Ambiguous reference to '{package_name}' in registry {registry_id}; "
                f"using {candidates[0]} out of {len(candidates)} candidates"
            )
        return candidates[0]
