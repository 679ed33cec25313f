"""Mirror APT repository indexes and artifacts into an object store."""

__version__ = "0.1.0"
