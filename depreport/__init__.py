"""py-dep-report - license report for the third-party import closure of a Python package."""

__version__ = "0.1.0"
