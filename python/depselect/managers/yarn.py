"""yarn: dependencies come from the tree printed by `yarn list --json`."""

import json
import logging
import os
import re
from typing import Dict, List, Optional

from ..errors import DuplicateNameError, MissingDependencyError, ToolInvocationError
from ..models import Package, RawTreeNode, ResolvedNode, Selection
from ..version_parser import VersionParser
from .base import PackageManagerDefinition
from .exec import CancellationToken, exec_command

logger = logging.getLogger(__name__)

# Any of these in the project root means the project is managed by yarn
YARN_MARKERS = ['yarn.lock', '.yarnrc', '.yarnrc.yaml', '.pnp.cjs', '.yarn']

LIST_COMMAND = ['yarn', 'list', '--prod', '--json']

TREE_LINE_PATTERN = re.compile(r'^\{"type":"tree".*$', re.MULTILINE)

# Upper bound on nodes converted from a single tree listing
MAX_ITERATIONS = 10000


class NameIndex:
    """Top-level dependencies by name. Names must be unique."""

    def __init__(self, deps: List[ResolvedNode]):
        self._data: Dict[str, ResolvedNode] = {}
        for dep in deps:
            if dep.name in self._data:
                raise DuplicateNameError(f"Dependency seen more than once: {dep.name}")
            self._data[dep.name] = dep

    def find(self, name: str) -> ResolvedNode:
        dep = self._data.get(name)
        if dep is None:
            raise MissingDependencyError(f"Could not find dependency: {name}")
        return dep


class VisitedSet:
    """Nodes reached by a traversal, in the order they were first seen."""

    def __init__(self):
        self._data: Dict[int, ResolvedNode] = {}

    def add(self, dep: ResolvedNode) -> bool:
        """Mark dep as visited; False if it already was."""
        if id(dep) in self._data:
            return False
        self._data[id(dep)] = dep
        return True

    @property
    def values(self) -> List[ResolvedNode]:
        return list(self._data.values())


def parse_yarn_tree(raw: str) -> List[RawTreeNode]:
    """
    Extract the dependency forest from `yarn list --json` output.

    Raises:
        ToolInvocationError: Unless exactly one well-formed tree line is present
    """
    matches = TREE_LINE_PATTERN.findall(raw)
    if len(matches) != 1:
        raise ToolInvocationError(
            f"Could not parse result of `yarn list --json`: expected one tree line, found {len(matches)}"
        )

    try:
        trees = json.loads(matches[0])['data']['trees']
        return [RawTreeNode.from_json(tree) for tree in trees]
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise ToolInvocationError(f"Could not parse result of `yarn list --json`: {e}") from e


def as_yarn_dependencies(
    prefix: str,
    trees: List[RawTreeNode],
    prune: bool,
    max_iterations: int = MAX_ITERATIONS,
) -> List[ResolvedNode]:
    """
    Convert raw tree nodes into dependencies with on-disk paths.

    Each child lives in its parent's nested node_modules directory. When
    prune is set, nodes whose label carries a caret or tilde range are
    dropped together with their subtree; those are taken to be transitive
    rather than pinned top-level dependencies.
    """
    result: List[ResolvedNode] = []
    # (raw node, directory it lives in, list to attach it to)
    stack = [(tree, prefix, result) for tree in reversed(trees)]
    iterations = 0

    while stack:
        iterations += 1
        if iterations > max_iterations:
            raise ToolInvocationError(
                f"Dependency tree exceeds {max_iterations} nodes; refusing to continue"
            )

        raw, node_prefix, siblings = stack.pop()
        if prune and VersionParser.is_range(raw.raw_label):
            logger.debug(f"Pruning {raw.raw_label}")
            continue

        name = VersionParser.clean_name(raw.raw_label)
        dep = ResolvedNode(name=name, path=os.path.join(node_prefix, name), label=raw.raw_label)
        siblings.append(dep)

        child_prefix = os.path.join(node_prefix, name, 'node_modules')
        for child in reversed(raw.children):
            stack.append((child, child_prefix, dep.children))

    return result


def select_yarn_dependencies(deps: List[ResolvedNode], packaged_dependencies: List[str]) -> List[ResolvedNode]:
    """
    Return the top-level dependencies reachable from the packaged names.

    Children are matched to top-level entries by name, since yarn hoists
    every installed package to the top of its listing.
    """
    index = NameIndex(deps)
    reached = VisitedSet()

    for name in packaged_dependencies:
        stack = [name]
        while stack:
            dep = index.find(stack.pop())
            if not reached.add(dep):
                # already seen -> done
                continue
            stack.extend(child.name for child in reversed(dep.children))

    return reached.values


def flatten_dependencies(deps: List[ResolvedNode], selection: Selection) -> Selection:
    """Add every dependency and all of its descendants to the selection."""
    stack = list(reversed(deps))
    while stack:
        dep = stack.pop()
        selection.add(dep.path, Package(system='npm', name=dep.name, version=dep.version))
        stack.extend(reversed(dep.children))
    return selection


class Yarn(PackageManagerDefinition):
    """Resolves dependencies from yarn's production dependency tree."""

    name = 'yarn'

    def __init__(self, max_iterations: int = MAX_ITERATIONS):
        self.max_iterations = max_iterations

    def task_run(self, task: str) -> List[str]:
        return ['yarn', 'run', task]

    def detect(self, cwd: str) -> bool:
        for name in YARN_MARKERS:
            if os.path.exists(os.path.join(cwd, name)):
                logger.info(
                    f"Detected presence of {name}. Using 'yarn' instead of 'npm' "
                    f"(to override this pass '--package-manager npm' on the command line)."
                )
                return True
        return False

    def get_production_dependencies(
        self,
        cwd: str,
        packaged_dependencies: Optional[List[str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[ResolvedNode]:
        """Run `yarn list` and return the pruned or selected dependency trees."""
        cwd = os.path.abspath(cwd)
        result = exec_command(
            LIST_COMMAND,
            cwd=cwd,
            env={'DISABLE_V8_COMPILE_CACHE': '1'},
            cancellation_token=cancellation_token,
        )
        trees = parse_yarn_tree(result.stdout)
        logger.debug(f"yarn reported {len(trees)} top-level dependencies")

        using_packaged_dependencies = packaged_dependencies is not None
        deps = as_yarn_dependencies(
            os.path.join(cwd, 'node_modules'),
            trees,
            prune=not using_packaged_dependencies,
            max_iterations=self.max_iterations,
        )

        if using_packaged_dependencies:
            deps = select_yarn_dependencies(deps, packaged_dependencies)
        return deps

    def get_dependencies(
        self,
        cwd: str,
        packaged_dependencies: Optional[List[str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Selection:
        cwd = os.path.abspath(cwd)
        deps = self.get_production_dependencies(cwd, packaged_dependencies, cancellation_token)
        selection = flatten_dependencies(deps, Selection(cwd))
        logger.info(f"Selected {len(selection)} directories from yarn dependency tree")
        return selection
