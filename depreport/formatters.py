"""Output formatters for license reports."""

import json
import logging
from typing import Dict, List, Optional, Protocol, TextIO, Type

import yaml
from cyclonedx.exception import CycloneDxException
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.model.license import DisjunctiveLicense
from cyclonedx.output.json import JsonV1Dot6

from .errors import ConfigError
from .models import Entry, UNKNOWN_LICENSE, UNRESOLVED_LICENSE

logger = logging.getLogger(__name__)

CSV_HEADER = ("Parent", "Package", "License")


class Formatter(Protocol):
    """Accumulates report entries and serializes them once."""

    def add_entry(self, entry: Entry) -> None:
        ...

    def write(self, sink: TextIO) -> None:
        ...


class CSVFormatter:
    """Comma-joined lines under a fixed header. Fields are not escaped."""

    def __init__(self):
        self.lines: List[str] = []

    def add_entry(self, entry: Entry) -> None:
        self.lines.append(f"{entry.parent},{entry.package},{entry.license}\n")

    def write(self, sink: TextIO) -> None:
        try:
            sink.write(",".join(CSV_HEADER) + "\n")
        except (OSError, ValueError) as e:
            logger.error(f"Could not write CSV header: {e}")

        for line in self.lines:
            try:
                sink.write(line)
            except (OSError, ValueError) as e:
                logger.error(f"Could not write CSV line: {e}")


class JSONFormatter:
    """A single pretty-printed array of {parent, package, license} objects."""

    def __init__(self):
        self.entries: List[Dict[str, str]] = []

    def add_entry(self, entry: Entry) -> None:
        self.entries.append(entry.as_dict())

    def write(self, sink: TextIO) -> None:
        try:
            output = json.dumps(self.entries, indent=2) + "\n"
        except (TypeError, ValueError) as e:
            logger.error(f"Could not encode entries to JSON: {e}")
            return

        try:
            sink.write(output)
        except (OSError, ValueError) as e:
            logger.error(f"Could not write JSON: {e}")


class YAMLFormatter:
    """A block-style YAML sequence of {parent, package, license} mappings."""

    def __init__(self):
        self.entries: List[Dict[str, str]] = []

    def add_entry(self, entry: Entry) -> None:
        self.entries.append(entry.as_dict())

    def write(self, sink: TextIO) -> None:
        try:
            output = yaml.safe_dump(self.entries, sort_keys=False, default_flow_style=False)
        except yaml.YAMLError as e:
            logger.error(f"Could not encode entries to YAML: {e}")
            return

        try:
            sink.write(output)
        except (OSError, ValueError) as e:
            logger.error(f"Could not write YAML: {e}")


class CycloneDXFormatter:
    """
    A CycloneDX 1.6 JSON document.

    Every package named in an entry (as parent or dependency) becomes a
    component; external packages carry their license, and each parent gets a
    dependency record listing the packages it imports.
    """

    def __init__(self):
        self.entries: List[Entry] = []

    def add_entry(self, entry: Entry) -> None:
        self.entries.append(entry)

    def write(self, sink: TextIO) -> None:
        try:
            output = JsonV1Dot6(self._build_bom()).output_as_string(indent=2) + "\n"
        except (CycloneDxException, TypeError, ValueError) as e:
            logger.error(f"Could not encode entries to CycloneDX: {e}")
            return

        try:
            sink.write(output)
        except (OSError, ValueError) as e:
            logger.error(f"Could not write CycloneDX: {e}")

    def _build_bom(self) -> Bom:
        from . import __version__

        bom = Bom()
        bom.metadata.tools.components.add(
            Component(name="py-dep-report", version=__version__, type=ComponentType.APPLICATION)
        )

        licenses = {entry.package: entry.license for entry in self.entries}
        components: Dict[str, Component] = {}
        edges: Dict[str, List[str]] = {}

        for entry in self.entries:
            for name in (entry.parent, entry.package):
                if name not in components:
                    components[name] = self._component(name, licenses.get(name))
                    bom.components.add(components[name])

            children = edges.setdefault(entry.parent, [])
            if entry.package not in children:
                children.append(entry.package)

        for parent, children in edges.items():
            bom.register_dependency(components[parent], [components[c] for c in children])

        return bom

    @staticmethod
    def _component(name: str, license_name: Optional[str] = None) -> Component:
        component = Component(name=name, type=ComponentType.LIBRARY, bom_ref=name)
        if license_name and license_name not in (UNKNOWN_LICENSE, UNRESOLVED_LICENSE):
            component.licenses.add(DisjunctiveLicense(name=license_name))
        return component


FORMATTERS: Dict[str, Type[Formatter]] = {
    "csv": CSVFormatter,
    "json": JSONFormatter,
    "yaml": YAMLFormatter,
    "cyclonedx": CycloneDXFormatter,
}


def create_formatter(name: str) -> Formatter:
    """Create a formatter by format name (csv, json, yaml, cyclonedx)."""
    formatter_class = FORMATTERS.get(name.strip().lower())
    if formatter_class is None:
        raise ConfigError(
            f"invalid format specified [{name}] valid values are [{', '.join(FORMATTERS)}]"
        )
    return formatter_class()
