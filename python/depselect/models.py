"""Core data models for depselect."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from packageurl import PackageURL


@dataclass
class Package:
    """Represents an installed package with system, name, version and location."""

    system: str  # npm, jsr
    name: str
    version: str
    path: Optional[str] = None  # Absolute directory the package is installed in

    def __post_init__(self):
        """Normalize system to lowercase."""
        self.system = self.system.lower()

    @property
    def full_name(self) -> str:
        """Return the full package name in system:name@version format."""
        return f"{self.system}:{self.name}@{self.version}"

    @property
    def purl(self) -> PackageURL:
        """Return the Package URL for this package."""
        namespace = None
        name = self.name
        if name.startswith('@') and '/' in name:
            namespace, name = name.split('/', 1)
        return PackageURL(type=self.system, namespace=namespace, name=name, version=self.version or None)

    def __str__(self) -> str:
        return self.full_name


@dataclass
class RawTreeNode:
    """A node of a dependency tree exactly as reported by a package manager."""

    raw_label: str  # Unparsed "name@specifier"
    children: List['RawTreeNode'] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict) -> 'RawTreeNode':
        """Build a raw tree from a {"name": ..., "children": [...]} mapping."""
        root = cls(raw_label=data.get('name', ''))
        stack = [(root, data.get('children') or [])]
        while stack:
            parent, children = stack.pop()
            for child in children:
                node = cls(raw_label=child.get('name', ''))
                parent.children.append(node)
                stack.append((node, child.get('children') or []))
        return root


@dataclass
class ResolvedNode:
    """Represents a normalized dependency with its on-disk location."""

    name: str
    path: str
    label: str = ""
    children: List['ResolvedNode'] = field(default_factory=list, compare=False, hash=False)

    def __eq__(self, other) -> bool:
        """Equality based on object identity; each node is owned by one parent."""
        return self is other

    def __hash__(self) -> int:
        return id(self)

    @property
    def version(self) -> str:
        """Specifier text following the name in the original label."""
        prefix = f"{self.name}@"
        if self.label.startswith(prefix):
            return self.label[len(prefix):]
        return ""


@dataclass
class WorkspaceRoot:
    """A workspace member as described by the lock document."""

    dependencies: List[str] = field(default_factory=list)  # Registry ranges, e.g. npm:lodash@^4.0.0
    workspace_dependencies: List[str] = field(default_factory=list)  # Local package names
    name: Optional[str] = None  # Read from the member's package.json


@dataclass
class RegistryEntry:
    """A single pinned package inside a registry section of the lock document."""

    integrity: str = ""
    dependencies: List[str] = field(default_factory=list)
    bin: bool = False


@dataclass
class LockDocument:
    """Parsed deno.lock contents."""

    version: str
    specifiers: Dict[str, str]
    members: Dict[str, WorkspaceRoot]  # local path -> member
    registries: Dict[str, Dict[str, RegistryEntry]]  # registry id -> name@version -> entry


class Selection:
    """Ordered, deduplicated set of directories to bundle.

    Behaves like a set of absolute paths; paths whose package identity is
    known also remember the corresponding Package.
    """

    def __init__(self, root: Optional[str] = None):
        self._paths: Dict[str, Optional[Package]] = {}
        if root is not None:
            self.add(root)

    def add(self, path: str, package: Optional[Package] = None) -> None:
        if self._paths.get(path) is not None:
            return
        if package is not None and package.path is None:
            package.path = path
        self._paths[path] = package

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    @property
    def packages(self) -> List[Package]:
        """Known package identities, in selection order."""
        return [pkg for pkg in self._paths.values() if pkg is not None]

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __contains__(self, path) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __eq__(self, other) -> bool:
        if isinstance(other, Selection):
            return set(self._paths) == set(other._paths)
        if isinstance(other, (set, frozenset)):
            return set(self._paths) == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"Selection({self.paths!r})"
