"""Build and serve a local cache of TMDb popular movies."""

__version__ = "0.1.0"
