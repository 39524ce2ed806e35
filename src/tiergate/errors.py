"""Exception types raised by tiergate library code."""


class TiergateError(Exception):
    """Base class for tiergate errors."""


class ConfigError(TiergateError):
    """Raised when .tiergate/config.yaml is unreadable or invalid."""


class TierTableError(TiergateError):
    """Raised when a tier convention file is unreadable or invalid."""


class DiscoveryError(TiergateError):
    """Raised when requested paths do not exist or hold no components."""
