"""Anonymous visitor to admin chat backend."""

__version__ = "1.0.0"
