"""Process, filesystem, network and platform helpers."""
