"""Static import resolution for Python packages.

Modules are located with ``importlib.machinery.PathFinder`` and their source is
scanned with ``ast``; nothing is imported or executed. A *package* here is a
directory on the module search path and its identifier covers the ``.py``
files directly inside it; sub-packages are packages of their own.
"""

import ast
import logging
import os
import sys
from importlib.machinery import ModuleSpec, PathFinder
from importlib.metadata import packages_distributions
from pathlib import Path
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import ImportResolutionError
from .models import ImportSet

logger = logging.getLogger(__name__)

STDLIB_MODULES: FrozenSet[str] = frozenset(sys.stdlib_module_names) | frozenset(sys.builtin_module_names) | {"__future__"}


def is_test_file(path: Path) -> bool:
    """Whether a source file only holds tests (test_*.py, *_test.py, conftest.py)."""
    name = path.name
    return name.startswith("test_") or name.endswith("_test.py") or name == "conftest.py"


def identifier_for_path(path: str) -> Optional[Tuple[str, str]]:
    """
    Map a filesystem path to a package identifier.

    Walks up through enclosing regular packages (directories with an
    ``__init__.py``), so ``src/mypkg/sub`` becomes ``mypkg.sub``.

    Returns:
        (identifier, directory to add to the search path), or None if the
        path is neither a directory nor a ``.py`` file
    """
    target = Path(path).resolve()
    if target.is_dir():
        name = target.name
    elif target.is_file() and target.suffix == ".py":
        name = target.stem
    else:
        return None

    parent = target.parent
    while (parent / "__init__.py").is_file():
        name = f"{parent.name}.{name}"
        parent = parent.parent

    return name, str(parent)


def looks_like_path(identifier: str) -> bool:
    return (
        "/" in identifier
        or os.sep in identifier
        or identifier.endswith(".py")
        or identifier in (".", "..")
    )


class ModuleImportResolver:
    """Resolves the direct imports of a package by parsing its source files."""

    def __init__(self, search_path: Optional[Sequence[str]] = None):
        """
        Args:
            search_path: Directories to locate top-level modules in
                (defaults to ``sys.path``)
        """
        self.search_path: Optional[List[str]] = list(search_path) if search_path is not None else None
        # editable installs are only visible through sys.meta_path finders
        self.use_meta_path = search_path is None
        self._specs: Dict[str, Optional[ModuleSpec]] = {}
        self._scanned: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {}
        self._distributions: Optional[Mapping[str, List[str]]] = None

    def add_search_path(self, directory: str) -> None:
        """Put a directory in front of the search path."""
        current = self.search_path if self.search_path is not None else list(sys.path)
        if directory not in current:
            self.search_path = [directory] + current
            self._specs.clear()
            self._scanned.clear()
            logger.debug(f"Added {directory} to module search path")

    def root_identifier(self, argument: str) -> str:
        """Turn a command-line root (dotted name or path) into a package identifier."""
        if not looks_like_path(argument):
            return argument

        mapped = identifier_for_path(argument)
        if mapped is None:
            raise ImportResolutionError(argument, "path is not a package directory or .py file")

        identifier, directory = mapped
        self.add_search_path(directory)
        logger.info(f"Using {identifier} from {directory} for {argument}")
        return identifier

    def resolve_imports(self, identifier: str, root: str) -> ImportSet:
        """
        Get the direct imports of a package.

        Args:
            identifier: Dotted package name
            root: Root package of the current resolution, used to decide
                whether ``identifier`` is internal

        Raises:
            ImportResolutionError: If the package cannot be located or read
        """
        if identifier not in self._scanned:
            self._scanned[identifier] = self._scan(identifier)

        imports, test_imports = self._scanned[identifier]
        return ImportSet(
            imports=imports,
            test_imports=test_imports,
            internal=self.same_project(identifier, root),
        )

    def same_project(self, identifier: str, root: str) -> bool:
        """Whether two packages belong to the same installed distribution (or top-level package)."""
        top, root_top = identifier.partition(".")[0], root.partition(".")[0]
        if top == root_top:
            return True

        dists = self._distributions_for(top)
        return bool(dists) and bool(dists & self._distributions_for(root_top))

    def _distributions_for(self, top_level: str) -> FrozenSet[str]:
        if self._distributions is None:
            self._distributions = packages_distributions()
        return frozenset(self._distributions.get(top_level, ()))

    def _find_spec(self, fullname: str) -> Optional[ModuleSpec]:
        if fullname in self._specs:
            return self._specs[fullname]

        parent, _, _ = fullname.rpartition(".")
        spec = None
        try:
            if parent:
                parent_spec = self._find_spec(parent)
                if parent_spec is not None and parent_spec.submodule_search_locations is not None:
                    spec = PathFinder.find_spec(fullname, list(parent_spec.submodule_search_locations))
            else:
                spec = PathFinder.find_spec(fullname, self.search_path)
                if spec is None and self.use_meta_path:
                    spec = self._find_meta_path_spec(fullname)
        except (ImportError, ValueError) as e:
            logger.debug(f"Could not locate {fullname}: {e}")

        self._specs[fullname] = spec
        return spec

    @staticmethod
    def _find_meta_path_spec(fullname: str) -> Optional[ModuleSpec]:
        for finder in sys.meta_path:
            if finder is PathFinder or not hasattr(finder, "find_spec"):
                continue
            spec = finder.find_spec(fullname, None)
            if spec is not None and spec.origin not in ("built-in", "frozen"):
                return spec
        return None

    def _locate(self, identifier: str) -> Tuple[List[Path], bool]:
        """Return the source files making up a package and whether it is a package."""
        spec = self._find_spec(identifier)
        if spec is None:
            raise ImportResolutionError(identifier, "module not found")

        if spec.submodule_search_locations is not None:
            files = []
            for location in spec.submodule_search_locations:
                files.extend(sorted(Path(location).glob("*.py")))
            return files, True

        if spec.origin and spec.origin.endswith(".py"):
            return [Path(spec.origin)], False

        # extension, frozen or built-in module: nothing to scan
        return [], False

    def _scan(self, identifier: str) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        files, is_package = self._locate(identifier)
        package = identifier if is_package else identifier.rpartition(".")[0]

        imports: Dict[str, None] = {}
        test_imports: Dict[str, None] = {}

        for path in files:
            target = test_imports if is_test_file(path) else imports
            for name in self._file_imports(identifier, path, package):
                canonical = self._canonical(name)
                if canonical and canonical != identifier:
                    target.setdefault(canonical)

        logger.debug(f"{identifier}: {len(imports)} imports, {len(test_imports)} test imports in {len(files)} files")
        return tuple(imports), tuple(name for name in test_imports if name not in imports)

    def _file_imports(self, identifier: str, path: Path, package: str) -> Iterator[str]:
        try:
            source = path.read_bytes()
        except OSError as e:
            raise ImportResolutionError(identifier, f"cannot read {path}: {e}") from e

        try:
            tree = ast.parse(source, filename=str(path))
        except (SyntaxError, ValueError) as e:
            logger.warning(f"Skipping unparsable file {path}: {e}")
            return

        nodes = [n for n in ast.walk(tree) if isinstance(n, (ast.Import, ast.ImportFrom))]
        nodes.sort(key=lambda n: (n.lineno, n.col_offset))

        for node in nodes:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    yield alias.name
                continue

            base = self._absolute(node.module, node.level, package)
            if base is None:
                logger.debug(f"Ignoring relative import beyond top-level package in {path}")
                continue
            for alias in node.names:
                yield base if alias.name == "*" else f"{base}.{alias.name}"

    @staticmethod
    def _absolute(module: Optional[str], level: int, package: str) -> Optional[str]:
        """Resolve a (possibly relative) from-import target to an absolute name."""
        if level == 0:
            return module
        if not package:
            return None

        parts = package.split(".")
        if level - 1 >= len(parts):
            return None

        base = ".".join(parts[: len(parts) - (level - 1)])
        return f"{base}.{module}" if module else base

    def _canonical(self, name: str) -> Optional[str]:
        """
        Map an imported name to the package that provides it.

        Returns the deepest package prefix of ``name`` (or a top-level module),
        the bare top-level name when it cannot be located, and None for
        standard library modules.
        """
        parts = name.split(".")
        top = parts[0]
        if not top or top in STDLIB_MODULES:
            return None

        spec = self._find_spec(top)
        if spec is None or spec.submodule_search_locations is None:
            return top

        canonical = top
        for i in range(2, len(parts) + 1):
            candidate = ".".join(parts[:i])
            sub = self._find_spec(candidate)
            if sub is None or sub.submodule_search_locations is None:
                break
            canonical = candidate
        return canonical
