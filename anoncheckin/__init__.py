"""Anonymous on-chain meeting check-in service."""

__version__ = "1.0.0"
