"""addonkit - dependency manager for project addons."""

__version__ = "0.1.0"
