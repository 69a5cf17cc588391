"""csctl - Codesphere install config and secret lifecycle CLI."""

__version__ = "0.1.0"
