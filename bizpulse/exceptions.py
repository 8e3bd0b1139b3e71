# bizpulse/exceptions.py
"""
Exception types shared across the package.
"""


class BizPulseError(Exception):
    """Base class for all package errors."""


class DataSourceUnavailable(BizPulseError):
    """Raw-row fetch failed (network, credentials, missing object, parse)."""


class MalformedRowError(BizPulseError):
    """A single source row failed shape validation."""


class InvalidFilterSpec(BizPulseError):
    """A caller-supplied filter value cannot be interpreted."""


class ConfigurationError(BizPulseError):
    """Required configuration is missing or invalid."""
