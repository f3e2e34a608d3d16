"""Local repository execution and synchronization engine built on the git CLI."""

__version__ = "0.1.0"
