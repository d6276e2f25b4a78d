"""Reading and parsing deno.lock documents."""

import json
import logging
import os
from typing import Dict, List, Optional, Tuple

from .errors import LockfileFormatError, LockfileNotFoundError
from .models import LockDocument, RegistryEntry, WorkspaceRoot

logger = logging.getLogger(__name__)

LOCKFILE_NAME = 'deno.lock'

# Registry sections recognized in the lock document
KNOWN_REGISTRIES = ('npm', 'jsr')


def find_deno_lock(cwd: str) -> Optional[str]:
    """Find deno.lock in cwd or one of its ancestor directories."""
    directory = os.path.abspath(cwd)
    while directory != os.path.dirname(directory):
        lock_file = os.path.join(directory, LOCKFILE_NAME)
        if os.path.isfile(lock_file):
            return lock_file
        directory = os.path.dirname(directory)
    return None


def read_deno_lock(cwd: str) -> Tuple[str, LockDocument]:
    """
    Locate and parse the deno.lock governing a project.

    Returns:
        Tuple of the lock file path and the parsed document

    Raises:
        LockfileNotFoundError: If no deno.lock exists in cwd or its parents
        LockfileFormatError: If the document is malformed
    """
    lock_path = find_deno_lock(cwd)
    if not lock_path:
        raise LockfileNotFoundError(
            f"Could not find {LOCKFILE_NAME} file in {cwd} or its parents"
        )

    logger.info(f"Reading lock file: {lock_path}")
    with open(lock_path, 'r', encoding='utf-8') as f:
        content = f.read()
    return lock_path, parse_lock_document(content)


def parse_lock_document(content: str) -> LockDocument:
    """Parse the JSON text of a deno.lock file."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise LockfileFormatError(f"Invalid JSON in {LOCKFILE_NAME}: {e}") from e

    if not isinstance(data, dict):
        raise LockfileFormatError(f"Expected a JSON object at the top of {LOCKFILE_NAME}")

    specifiers = data.get('specifiers', {})
    if not isinstance(specifiers, dict):
        raise LockfileFormatError("'specifiers' must be an object")

    registries: Dict[str, Dict[str, RegistryEntry]] = {}
    for registry_id in KNOWN_REGISTRIES:
        if registry_id not in data:
            continue
        section = data[registry_id]
        if not isinstance(section, dict):
            raise LockfileFormatError(f"Registry section '{registry_id}' must be an object")
        registries[registry_id] = {
            key: _parse_registry_entry(registry_id, key, value)
            for key, value in section.items()
        }

    document = LockDocument(
        version=str(data.get('version', '')),
        specifiers={str(k): str(v) for k, v in specifiers.items()},
        members=_parse_workspace(data.get('workspace')),
        registries=registries,
    )
    logger.debug(
        f"Parsed lock document version '{document.version}' with "
        f"{len(document.specifiers)} specifiers, {len(document.members)} workspace members, "
        f"registries {sorted(document.registries)}"
    )
    return document


def _parse_registry_entry(registry_id: str, key: str, value) -> RegistryEntry:
    if not isinstance(value, dict):
        raise LockfileFormatError(f"Entry '{key}' in registry '{registry_id}' must be an object")
    dependencies = value.get('dependencies') or []
    if not isinstance(dependencies, list):
        raise LockfileFormatError(f"Dependencies of '{key}' in registry '{registry_id}' must be a list")
    return RegistryEntry(
        integrity=str(value.get('integrity', '')),
        dependencies=[str(dep) for dep in dependencies],
        bin=bool(value.get('bin', False)),
    )


def _parse_workspace_member(local_path: str, value) -> WorkspaceRoot:
    if not isinstance(value, dict):
        raise LockfileFormatError(f"Workspace member '{local_path}' must be an object")
    package_json = value.get('packageJson') or {}
    dependencies = package_json.get('dependencies') or []
    if not isinstance(dependencies, list):
        raise LockfileFormatError(f"packageJson.dependencies of workspace '{local_path}' must be a list")
    return WorkspaceRoot(dependencies=[str(dep) for dep in dependencies])


def _parse_workspace(workspace) -> Dict[str, WorkspaceRoot]:
    """Return workspace members keyed by local path."""
    if workspace is None:
        return {}
    if not isinstance(workspace, dict):
        raise LockfileFormatError("'workspace' must be an object")

    if 'members' in workspace:
        members = workspace['members']
        if not isinstance(members, dict):
            raise LockfileFormatError("'workspace.members' must be an object")
        return {path: _parse_workspace_member(path, member) for path, member in members.items()}
    elif 'packageJson' in workspace:
        # Single root workspace member
        return {'.': _parse_workspace_member('.', workspace)}
    return {}


def unwrap_rebind(dependency: str) -> str:
    """
    Strip the alias from a rebound dependency reference.

    Rebound packages have the form <alias>@<registry>:<real-name>@<version>,
    recognizable by an "@" appearing before the first ":". Only the real
    target is kept.
    """
    colon_point = dependency.find(':')
    at_point = dependency.find('@', 1)
    if at_point != -1 and colon_point != -1 and at_point < colon_point:
        return dependency[at_point + 1:]
    return dependency


def dependency_token(dependency: str, registry_id: str) -> str:
    """Turn an entry's dependency string into a registry:name@version frontier token."""
    dependency = unwrap_rebind(dependency)
    if ':' in dependency:
        return dependency
    return f"{registry_id}:{dependency}"


def iter_registry_keys(document: LockDocument) -> List[tuple]:
    """All (registry_id, key) pairs in known-registry order."""
    return [
        (registry_id, key)
        for registry_id in KNOWN_REGISTRIES
        for key in document.registries.get(registry_id, {})
    ]
