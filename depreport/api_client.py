"""Client for interacting with the deps.dev API."""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from . import __version__

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Normalize a distribution name the way PyPI does (PEP 503)."""
    return re.sub(r"[-_.]+", "-", name).lower()


class DepsDevClient:
    """Client for fetching package version metadata from the deps.dev API."""

    BASE_URL = "https://api.deps.dev/v3/systems"

    def __init__(self, timeout: float = 30):
        """Initialize the API client."""
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"py-dep-report/{__version__}"
        })

    def get_version(self, system: str, name: str, version: str) -> Optional[Dict[str, Any]]:
        """
        Get metadata for a single package version from deps.dev.

        Args:
            system: Package system (pypi, npm, maven, ...)
            name: Package name
            version: Exact version string

        Returns:
            JSON response, or None if the request fails
        """
        if system == "pypi":
            name = normalize_name(name)

        url = (
            f"{self.BASE_URL}/{system}/packages/{quote(name, safe='')}"
            f"/versions/{quote(version, safe='')}"
        )
        logger.debug(f"Fetching {system}:{name}:{version} from {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
            if response.status_code == 200:
                return response.json()
            logger.info(f"Failed to get version info for {system}:{name}:{version}: HTTP {response.status_code}")
            return None
        except requests.RequestException as e:
            logger.error(f"Error fetching version info for {system}:{name}:{version}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Invalid JSON from deps.dev for {system}:{name}:{version}: {e}")
            return None

    def get_version_licenses(self, system: str, name: str, version: str) -> List[str]:
        """Get the license expressions deps.dev records for a package version."""
        data = self.get_version(system, name, version)
        if not data:
            return []
        return [expr for expr in data.get("licenses", []) if expr]

    def close(self):
        """Close the session and clean up resources."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
