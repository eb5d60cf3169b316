"""Manifest and lock file configuration."""
