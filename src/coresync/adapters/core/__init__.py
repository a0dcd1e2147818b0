"""Proxy core adapters."""

from __future__ import annotations

from .memory import InMemoryCore
from .process import ProcessCore

__all__ = ["InMemoryCore", "ProcessCore"]
