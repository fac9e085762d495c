"""
Content Hub

Runtime-defined content tables with relations, media attachments and
per-field translations, served through a generic query API.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("content-hub")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
