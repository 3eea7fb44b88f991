"""Exceptions raised by depreport."""


class DepReportError(Exception):
    """Base class for all depreport errors."""


class ConfigError(DepReportError):
    """Invalid or unreadable configuration."""


class ImportResolutionError(DepReportError):
    """The imports of a single package could not be determined."""

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"cannot resolve imports of {identifier}: {reason}")


class ResolutionError(DepReportError):
    """A root package could not be resolved; fatal for the whole run."""

    def __init__(self, identifier: str, cause: Exception):
        self.identifier = identifier
        self.cause = cause
        super().__init__(f"could not resolve root package {identifier}: {cause}")


class LicenseLookupError(DepReportError):
    """License metadata for a package could not be retrieved."""

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"license lookup failed for {identifier}: {reason}")
