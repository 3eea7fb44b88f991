"""Core data models for depreport."""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

UNKNOWN_LICENSE = "Unknown"
UNRESOLVED_LICENSE = "Unresolved"


@dataclass(frozen=True)
class ImportSet:
    """Direct imports of one package as reported by an import resolver."""

    imports: Tuple[str, ...] = ()
    test_imports: Tuple[str, ...] = ()  # only seen in test modules
    internal: bool = False  # same project as the resolution root


@dataclass
class PackageNode:
    """A package in a dependency tree (a tree, not a graph - nodes are never shared)."""

    name: str
    internal: bool = False
    license: str = ""  # meaningless for internal packages
    dependencies: List['PackageNode'] = field(default_factory=list)
    error: Optional[str] = None  # set when the package could not be resolved

    def __post_init__(self):
        """Strip whitespace from the identifier."""
        self.name = self.name.strip()

    @property
    def unresolved(self) -> bool:
        return self.error is not None

    def add_dependency(self, child: 'PackageNode') -> bool:
        """Add a child dependency; returns False if one with the same name exists."""
        if any(dep.name == child.name for dep in self.dependencies):
            return False
        self.dependencies.append(child)
        return True

    def walk(self) -> Iterator['PackageNode']:
        """Yield this node and all descendants, depth first."""
        yield self
        for dep in self.dependencies:
            yield from dep.walk()

    def render(self, prefix: str = "", is_last: bool = True, depth: int = 0) -> str:
        """Generate a tree visualization string."""
        if self.internal:
            marker = " (internal)"
        elif self.unresolved:
            marker = f" [{UNRESOLVED_LICENSE}: {self.error}]"
        else:
            marker = f" [{self.license}]"

        connector = "└── " if is_last else "├── "
        if depth == 0:
            lines = [f"{self.name}{marker}"]
        else:
            lines = [f"{prefix}{connector}{self.name}{marker}"]

        for i, child in enumerate(self.dependencies):
            is_last_child = (i == len(self.dependencies) - 1)
            if depth == 0:
                child_prefix = ""
            else:
                child_prefix = prefix + ("    " if is_last else "│   ")
            lines.append(child.render(child_prefix, is_last_child, depth + 1))

        return "\n".join(lines)


@dataclass(frozen=True)
class Entry:
    """One reportable import edge from a package to an external dependency."""

    parent: str
    package: str
    license: str

    def as_dict(self) -> dict:
        return {"parent": self.parent, "package": self.package, "license": self.license}
