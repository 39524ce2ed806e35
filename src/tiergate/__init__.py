"""tiergate: Tier & Spec Conformance Checker for React/TypeScript component trees."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tiergate")
except PackageNotFoundError:
    # running from a source checkout without installation
    __version__ = "0.0.0"
