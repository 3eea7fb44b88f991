"""Report driver: resolves root packages and feeds their edges to a formatter."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, TextIO

from .formatters import Formatter
from .models import Entry, PackageNode
from .tree_builder import ImportResolver, LicenseLookup, Tree

logger = logging.getLogger(__name__)


@dataclass
class ReportContext:
    """Everything a report run needs, passed explicitly instead of held globally."""

    packages: List[str]
    resolver: ImportResolver
    license_lookup: LicenseLookup
    formatter: Formatter
    writer: TextIO
    depth: int = 0
    resolve_internal: bool = False
    resolve_test: bool = False
    close: Optional[Callable[[], None]] = field(default=None, repr=False)

    def release(self) -> None:
        """Flush and release the output sink."""
        try:
            self.writer.flush()
        except (OSError, ValueError) as e:
            logger.error(f"Could not flush output: {e}")
        if self.close is not None:
            try:
                self.close()
            except OSError as e:
                logger.error(f"Could not close output: {e}")


def flatten(root: PackageNode) -> Iterator[Entry]:
    """
    Yield one entry per import edge that ends at an external package.

    All direct children of a node are reported before descending into any of
    them; internal children are descended into but never reported.
    """
    for dep in root.dependencies:
        if not dep.internal:
            yield Entry(parent=root.name, package=dep.name, license=dep.license)

    for dep in root.dependencies:
        yield from flatten(dep)


def run_report(ctx: ReportContext) -> None:
    """
    Resolve every root package in order and write the combined report once.

    Raises:
        ResolutionError: If any root package cannot be resolved. Nothing is
            written in that case, but the sink is still released.
    """
    try:
        entry_count = 0
        for package in ctx.packages:
            tree = Tree(
                ctx.resolver,
                ctx.license_lookup,
                max_depth=ctx.depth,
                resolve_internal=ctx.resolve_internal,
                resolve_test=ctx.resolve_test,
            )
            root = tree.resolve(package)

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Dependency tree:\n{root.render()}")

            for entry in flatten(root):
                ctx.formatter.add_entry(entry)
                entry_count += 1

        logger.info(f"Writing {entry_count} entries for {len(ctx.packages)} root package(s)")
        ctx.formatter.write(ctx.writer)
    finally:
        ctx.release()
