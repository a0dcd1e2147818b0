"""Warp peer-provisioning adapter."""

from __future__ import annotations

from .client import WarpClient
from .keys import generate_keypair

__all__ = ["WarpClient", "generate_keypair"]
