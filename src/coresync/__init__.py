"""Transactional configuration control plane for a running proxy core."""

from __future__ import annotations

from importlib import metadata

try:
    __version__ = metadata.version("coresync")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+local"
