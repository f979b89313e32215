"""Offline tooling: presets and trajectory recording."""
