"""Builds license-annotated dependency trees by walking the import graph."""

import logging
from typing import Dict, FrozenSet, Optional, Protocol

from .errors import ImportResolutionError, LicenseLookupError, ResolutionError
from .models import ImportSet, PackageNode, UNKNOWN_LICENSE, UNRESOLVED_LICENSE

logger = logging.getLogger(__name__)


class ImportResolver(Protocol):
    def resolve_imports(self, identifier: str, root: str) -> ImportSet:
        ...


class LicenseLookup(Protocol):
    def lookup_license(self, identifier: str) -> str:
        ...


class Tree:
    """
    Dependency tree for a single root package.

    Expansion is edge-oriented: a package imported by two different parents
    appears twice, once under each. Cycles are cut using the set of packages
    on the current root-to-node path, so a package that imports one of its
    own ancestors is recorded once at that point with no dependencies.

    The resolver and license lookup are queried at most once per distinct
    identifier for the lifetime of the tree.
    """

    def __init__(
        self,
        resolver: ImportResolver,
        license_lookup: LicenseLookup,
        max_depth: int = 0,
        resolve_internal: bool = False,
        resolve_test: bool = False,
    ):
        self.resolver = resolver
        self.license_lookup = license_lookup
        self.max_depth = max_depth  # 0 = no limit
        self.resolve_internal = resolve_internal
        self.resolve_test = resolve_test

        self.root: Optional[PackageNode] = None
        self._root_name: str = ""
        self._imports: Dict[str, ImportSet] = {}
        self._licenses: Dict[str, str] = {}

    def resolve(self, identifier: str) -> PackageNode:
        """
        Resolve the dependency tree for a root package.

        Args:
            identifier: Dotted name of the root package

        Returns:
            The populated root node (also stored as ``self.root``)

        Raises:
            ResolutionError: If the root package itself cannot be resolved
        """
        if self.root is not None:
            raise RuntimeError(f"tree already resolved for {self.root.name}")

        self._root_name = identifier
        logger.info(f"Resolving dependency tree for {identifier}")

        try:
            imports = self._resolve_imports(identifier)
        except ImportResolutionError as e:
            raise ResolutionError(identifier, e) from e

        # A root always belongs to its own project
        self.root = PackageNode(name=identifier, internal=True)
        self._expand(self.root, imports, depth=0, path=frozenset([identifier]))

        logger.info(
            f"Resolved {identifier}: {sum(1 for _ in self.root.walk()) - 1} nodes, "
            f"{len(self._licenses)} distinct external packages"
        )
        return self.root

    def _resolve_imports(self, identifier: str) -> ImportSet:
        cached = self._imports.get(identifier)
        if cached is None:
            cached = self.resolver.resolve_imports(identifier, self._root_name)
            self._imports[identifier] = cached
        return cached

    def _lookup_license(self, identifier: str) -> str:
        if identifier in self._licenses:
            return self._licenses[identifier]

        try:
            license_name = self.license_lookup.lookup_license(identifier)
        except LicenseLookupError as e:
            logger.warning(str(e))
            license_name = UNKNOWN_LICENSE

        license_name = (license_name or "").strip() or UNKNOWN_LICENSE
        self._licenses[identifier] = license_name
        return license_name

    def _expand(self, node: PackageNode, imports: ImportSet, depth: int, path: FrozenSet[str]) -> None:
        if self.max_depth > 0 and depth >= self.max_depth:
            logger.debug(f"Depth limit {self.max_depth} reached at {node.name}")
            return

        names = list(imports.imports)
        if self.resolve_test:
            names.extend(imports.test_imports)

        for name in dict.fromkeys(names):
            node.add_dependency(self._visit(name, depth + 1, path))

    def _visit(self, name: str, depth: int, path: FrozenSet[str]) -> PackageNode:
        try:
            imports = self._resolve_imports(name)
        except ImportResolutionError as e:
            logger.warning(f"Recording {name} as unresolved: {e.reason}")
            return PackageNode(name=name, license=UNRESOLVED_LICENSE, error=e.reason)

        node = PackageNode(name=name, internal=imports.internal)
        if not node.internal:
            node.license = self._lookup_license(name)

        if name in path:
            logger.debug(f"Import cycle detected at {name}")
            return node

        if node.internal and not self.resolve_internal:
            return node

        self._expand(node, imports, depth, path | {name})
        return node
