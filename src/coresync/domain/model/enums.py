"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ObjectClass(StrEnum):
    """Object classes accepted by the save orchestrator."""

    CLIENTS = "clients"
    TLS = "tls"
    INBOUNDS = "inbounds"
    OUTBOUNDS = "outbounds"
    ENDPOINTS = "endpoints"
    CONFIG = "config"
    SETTINGS = "settings"


class Action(StrEnum):
    NEW = "new"
    EDIT = "edit"
    DELETE = "del"
    ADD_BULK = "addbulk"
    SET = "set"
    DISABLE = "disable"


class LinkOrigin(StrEnum):
    """Origin marker stored in a descriptor's ``type`` field."""

    LOCAL = "local"
    EXTERNAL = "external"
