"""License lookup for installed packages."""

import logging
from importlib.metadata import Distribution, PackageNotFoundError, distribution, packages_distributions
from typing import Dict, List, Mapping, Optional

from .api_client import DepsDevClient, normalize_name
from .errors import LicenseLookupError
from .models import UNKNOWN_LICENSE

logger = logging.getLogger(__name__)

# Longer "License" fields are usually the full license text
MAX_LICENSE_FIELD_LENGTH = 100


def license_from_metadata(metadata) -> Optional[str]:
    """
    Best-effort license name from core metadata.

    Checks License-Expression, then a short single-line License field, then
    the ``License ::`` trove classifiers.
    """
    expression = (metadata.get("License-Expression") or "").strip()
    if expression:
        return expression

    text = (metadata.get("License") or "").strip()
    if text and "\n" not in text and text.upper() != "UNKNOWN" and len(text) <= MAX_LICENSE_FIELD_LENGTH:
        return text

    names = []
    for classifier in metadata.get_all("Classifier") or []:
        if not classifier.startswith("License ::"):
            continue
        name = classifier.split("::")[-1].strip()
        if name and name != "OSI Approved" and name not in names:
            names.append(name)

    return " OR ".join(names) or None


class MetadataLicenseLookup:
    """Looks up licenses from the metadata of installed distributions."""

    def __init__(self):
        self._distributions: Optional[Mapping[str, List[str]]] = None

    def distribution_for(self, identifier: str) -> Optional[Distribution]:
        """Find the installed distribution providing a package's top-level module."""
        if self._distributions is None:
            self._distributions = packages_distributions()

        top = identifier.partition(".")[0]
        for dist_name in self._distributions.get(top, ()):
            try:
                return distribution(dist_name)
            except PackageNotFoundError:
                continue
        return None

    def lookup_license(self, identifier: str) -> str:
        dist = self.distribution_for(identifier)
        if dist is None:
            logger.debug(f"No installed distribution provides {identifier}")
            return UNKNOWN_LICENSE

        try:
            metadata = dist.metadata
        except OSError as e:
            raise LicenseLookupError(identifier, f"cannot read metadata: {e}") from e

        return license_from_metadata(metadata) or UNKNOWN_LICENSE


class DepsDevLicenseLookup:
    """Falls back to deps.dev for installed packages whose metadata names no license."""

    def __init__(self, client: DepsDevClient, fallback: Optional[MetadataLicenseLookup] = None):
        self.client = client
        self.fallback = fallback or MetadataLicenseLookup()
        self._by_distribution: Dict[str, str] = {}

    def lookup_license(self, identifier: str) -> str:
        license_name = self.fallback.lookup_license(identifier)
        if license_name != UNKNOWN_LICENSE:
            return license_name

        dist = self.fallback.distribution_for(identifier)
        if dist is None:
            return UNKNOWN_LICENSE

        key = f"{normalize_name(dist.metadata['Name'])}=={dist.version}"
        if key not in self._by_distribution:
            licenses = self.client.get_version_licenses("pypi", dist.metadata["Name"], dist.version)
            self._by_distribution[key] = " AND ".join(licenses) or UNKNOWN_LICENSE
            logger.debug(f"deps.dev license for {key}: {self._by_distribution[key]}")

        return self._by_distribution[key]
