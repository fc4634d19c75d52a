"""monoversion: dependency version consistency checks for monorepos."""

__version__ = "0.1.0"
