"""Addon resolution, caching and installation."""
