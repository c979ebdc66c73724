"""On-chain checkout for the Trenches item shop."""

__version__ = "0.1.0"
